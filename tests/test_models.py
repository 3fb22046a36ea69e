"""Tests for vector chunk models and row conversion."""

import json

import pytest
from pydantic import ValidationError

from butler.context.models import MAX_CHUNK_CHARS, ChunkMetadata, ContextBundle, VectorChunk


def test_chunk_content_truncated():
    chunk = VectorChunk(
        content="x" * (MAX_CHUNK_CHARS + 50),
        embedding=[0.1],
        metadata=ChunkMetadata(user_id="user-1"),
    )

    assert len(chunk.content) == MAX_CHUNK_CHARS
    assert chunk.id.startswith("chunk_")


def test_chunk_requires_embedding():
    with pytest.raises(ValidationError):
        VectorChunk(content="hi", embedding=[], metadata=ChunkMetadata(user_id="user-1"))


def test_metadata_validation():
    with pytest.raises(ValidationError):
        ChunkMetadata(user_id="user-1", importance=1.5)
    with pytest.raises(ValidationError):
        ChunkMetadata(user_id="")

    metadata = ChunkMetadata(userId="user-1", tags=["a", "b", "a"])
    assert metadata.user_id == "user-1"
    assert metadata.tags == ["a", "b"]


def test_chunk_is_immutable():
    chunk = VectorChunk(content="hi", embedding=[0.1], metadata=ChunkMetadata(user_id="user-1"))

    with pytest.raises(ValidationError):
        chunk.content = "changed"


def test_from_row_parses_json_embedding():
    row = {
        "id": "chunk_1",
        "user_id": "user-1",
        "content": "Budget approved",
        "embedding": json.dumps([0.1, 0.2]),
        "title": "Q3 Budget",
        "metadata": {"source": "conversation", "importance": 0.9, "tags": ["finance"]},
        "created_at": "2024-06-01T12:00:00+00:00",
    }

    chunk = VectorChunk.from_row(row)

    assert chunk.embedding == [0.1, 0.2]
    assert chunk.user_id == "user-1"
    assert chunk.metadata.title == "Q3 Budget"
    assert chunk.metadata.importance == 0.9
    assert chunk.metadata.created.year == 2024


def test_from_row_reads_owner_from_metadata():
    row = {"id": "chunk_2", "content": "x", "embedding": [1.0], "metadata": {"userId": "user-9"}}

    assert VectorChunk.from_row(row).user_id == "user-9"


def test_from_row_malformed_raises_value_error():
    with pytest.raises(ValueError):
        VectorChunk.from_row({"id": "bad", "user_id": "user-1", "content": "x", "embedding": "not json"})


def test_to_row_round_trips_through_from_row():
    chunk = VectorChunk(
        content="hello",
        embedding=[0.5, 0.5],
        metadata=ChunkMetadata(user_id="user-1", title="Greeting", tags=["t"]),
    )

    row = chunk.to_row()

    assert row["user_id"] == "user-1"
    assert isinstance(row["embedding"], str)
    assert "user_id" not in row["metadata"]
    assert VectorChunk.from_row(row) == chunk


def test_empty_bundle():
    bundle = ContextBundle.empty()

    assert bundle.confidence == 0.0
    assert bundle.sources == []
    assert bundle.project_context is None


def test_bundle_confidence_bounds():
    with pytest.raises(ValidationError):
        ContextBundle(confidence=101)
