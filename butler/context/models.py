"""Pydantic models for context retrieval."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Chunk content is capped before storage
MAX_CHUNK_CHARS = 2000


class Intent(str, Enum):
    """Coarse intent of a user utterance."""

    RECALL = "recall"
    SCHEDULING = "scheduling"
    COMMUNICATION = "communication"
    FILES = "files"
    PROJECT_MANAGEMENT = "project_management"
    SEARCH = "search"
    GENERAL = "general"


class ChunkType(str, Enum):
    """Kind of content a vector chunk was derived from."""

    CONVERSATION = "conversation"
    DOCUMENT = "document"
    TRANSCRIPTION = "transcription"
    KNOWLEDGE = "knowledge"


class ChunkMetadata(BaseModel):
    """Provenance and ranking hints attached to a vector chunk."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str = Field(default="knowledge", description="Origin system, e.g. conversation, audio")
    source_id: str | None = Field(default=None, alias="sourceId")
    type: ChunkType = Field(default=ChunkType.KNOWLEDGE)
    title: str = Field(default="Untitled")
    tags: list[str] = Field(default_factory=list)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str = Field(..., alias="userId", min_length=1)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        return list(dict.fromkeys(tags))


class VectorChunk(BaseModel):
    """
    A unit of retrievable knowledge with its embedding.

    Chunks are immutable. Updating content means creating a new chunk.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"chunk_{uuid4().hex}")
    content: str
    embedding: list[float]
    metadata: ChunkMetadata

    @field_validator("content")
    @classmethod
    def _truncate_content(cls, content: str) -> str:
        return content[:MAX_CHUNK_CHARS]

    @field_validator("embedding")
    @classmethod
    def _require_embedding(cls, embedding: list[float]) -> list[float]:
        if not embedding:
            raise ValueError("embedding must not be empty")
        return embedding

    @property
    def user_id(self) -> str:
        return self.metadata.user_id

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "VectorChunk":
        """
        Build a chunk from a vector_chunks table row.

        The embedding column may hold a JSON-encoded string or a list.

        Raises:
            ValueError: If the row is malformed (pydantic ValidationError included)
        """
        embedding = row.get("embedding")
        if isinstance(embedding, str):
            embedding = json.loads(embedding)

        metadata = dict(row.get("metadata") or {})
        owner = row.get("user_id") or metadata.get("userId") or metadata.get("user_id")
        metadata.pop("userId", None)
        metadata["user_id"] = owner
        if row.get("title") and "title" not in metadata:
            metadata["title"] = row["title"]
        if row.get("created_at") and "created" not in metadata:
            metadata["created"] = row["created_at"]

        return cls(
            id=row["id"],
            content=row.get("content") or "",
            embedding=embedding,
            metadata=ChunkMetadata.model_validate(metadata),
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize for insertion into the vector_chunks table."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "embedding": json.dumps(self.embedding),
            "title": self.metadata.title,
            "metadata": self.metadata.model_dump(mode="json", exclude={"user_id"}),
            "created_at": self.metadata.created.isoformat(),
        }


@dataclass(frozen=True)
class ScopeFilters:
    """Optional narrowing applied by every source adapter."""

    project_id: str | None = None
    conversation_id: str | None = None
    since: datetime | None = None


class ContextBundle(BaseModel):
    """Context gathered for a single user message."""

    relevant_knowledge: list[dict[str, Any]] = Field(default_factory=list)
    relevant_memories: list[dict[str, Any]] = Field(default_factory=list)
    relevant_files: list[dict[str, Any]] = Field(default_factory=list)
    relevant_emails: list[dict[str, Any]] = Field(default_factory=list)
    relevant_calendar_events: list[dict[str, Any]] = Field(default_factory=list)
    recent_activity: list[dict[str, Any]] = Field(default_factory=list)
    vector_matches: list[VectorChunk] = Field(default_factory=list)
    project_context: dict[str, Any] | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    sources: list[str] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "ContextBundle":
        """The fail-open result: no context, zero confidence."""
        return cls()
