"""Request/response schemas for the context API."""

from typing import Any

from pydantic import BaseModel, Field

from butler.context.models import ContextBundle, VectorChunk


class GatherContextRequest(BaseModel):
    """Gather context for one incoming chat message"""
    message: str = Field(..., description="Raw user utterance")
    user_id: str = Field(..., min_length=1, description="Owner of all searched data")
    conversation_id: str | None = Field(None, description="Narrows memory lookups to one conversation")
    project_id: str | None = Field(None, description="Explicit project scope; always gathers")


class GatherContextResponse(BaseModel):
    """Gathered bundle plus its prompt-ready rendering"""
    bundle: ContextBundle
    formatted: str


class VectorSearchRequest(BaseModel):
    """Standalone semantic search"""
    user_id: str = Field(..., min_length=1)
    query: str
    limit: int = Field(10, ge=1, le=100)
    threshold: float = Field(0.7, ge=-1.0, le=1.0)


class VectorSearchResponse(BaseModel):
    results: list[VectorChunk]


class StoreChunkRequest(BaseModel):
    """Content to embed and persist for later semantic search"""
    user_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ClearCacheResponse(BaseModel):
    cleared: int
