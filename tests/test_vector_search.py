"""Tests for RAG vector search over the vector cache."""

import json
from typing import Any, Dict, List

import pytest
from pydantic import ValidationError

from butler.core.similarity import DimensionMismatchError
from butler.core.vector_cache import VectorCache
from butler.core.vector_search import VectorSearchService, keyword_matches
from tests.fakes.fake_embedder import FakeEmbedder, make_chunk


def _row(chunk_id: str, embedding: List[float], user_id: str = "user-1", **kwargs) -> Dict[str, Any]:
    row = {
        "id": chunk_id,
        "user_id": user_id,
        "content": kwargs.pop("content", "content"),
        "embedding": json.dumps(embedding),
        "title": kwargs.pop("title", "Untitled"),
        "metadata": {},
        "created_at": "2024-06-01T12:00:00+00:00",
    }
    row.update(kwargs)
    return row


class FakeStore:
    """Durable store stand-in that records reads and writes."""

    def __init__(self, rows: List[Dict[str, Any]] | None = None, fail_reads: bool = False, fail_writes: bool = False):
        self.rows = rows or []
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.loads: List[str] = []
        self.inserted: List[Dict[str, Any]] = []

    def load(self, user_id: str) -> List[Dict[str, Any]]:
        self.loads.append(user_id)
        if self.fail_reads:
            raise RuntimeError("database unavailable")
        return list(self.rows)

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_writes:
            raise RuntimeError("insert failed")
        self.inserted.append(row)
        return row


def _service(store: FakeStore, embedder: FakeEmbedder) -> VectorSearchService:
    return VectorSearchService(embedder, VectorCache(ttl_seconds=60), load_rows=store.load, insert_row=store.insert)


@pytest.mark.asyncio
async def test_search_ranks_and_thresholds():
    store = FakeStore([
        _row("close", [0.9, 0.1]),
        _row("far", [0.0, 1.0]),
        _row("exact", [1.0, 0.0]),
    ])
    service = _service(store, FakeEmbedder({"budget": [1.0, 0.0]}))

    results = await service.search("user-1", "budget", limit=5, threshold=0.7)

    assert [c.id for c in results] == ["exact", "close"]


@pytest.mark.asyncio
async def test_search_loads_once_then_uses_cache():
    store = FakeStore([_row("a", [1.0, 0.0])])
    service = _service(store, FakeEmbedder(default=[1.0, 0.0]))

    await service.search("user-1", "first")
    await service.search("user-1", "second")

    assert store.loads == ["user-1"]


@pytest.mark.asyncio
async def test_expired_cache_triggers_reload():
    now = [0.0]
    store = FakeStore([_row("a", [1.0, 0.0])])
    embedder = FakeEmbedder(default=[1.0, 0.0])
    service = VectorSearchService(
        embedder, VectorCache(ttl_seconds=60, clock=lambda: now[0]), load_rows=store.load, insert_row=store.insert
    )

    await service.search("user-1", "budget")
    now[0] = 61.0
    await service.search("user-1", "budget")

    assert store.loads == ["user-1", "user-1"]


@pytest.mark.asyncio
async def test_search_excludes_other_users():
    store = FakeStore([_row("mine", [1.0, 0.0]), _row("theirs", [1.0, 0.0], user_id="user-2")])
    service = _service(store, FakeEmbedder(default=[1.0, 0.0]))

    results = await service.search("user-1", "anything")

    assert [c.id for c in results] == ["mine"]


@pytest.mark.asyncio
async def test_search_without_embedding_falls_back_to_keywords():
    store = FakeStore([
        _row("a", [1.0, 0.0], title="Q3 Budget", content="Marketing numbers"),
        _row("b", [1.0, 0.0], title="Hiring", content="Two engineers"),
    ])
    service = _service(store, FakeEmbedder(default=None))

    results = await service.search("user-1", "the budget please")

    assert [c.id for c in results] == ["a"]


@pytest.mark.asyncio
async def test_search_with_failed_load_returns_empty():
    store = FakeStore(fail_reads=True)
    service = _service(store, FakeEmbedder(default=[1.0, 0.0]))

    assert await service.search("user-1", "budget") == []
    assert service.cache.get("user-1") is None


@pytest.mark.asyncio
async def test_reload_skips_malformed_rows():
    store = FakeStore([
        _row("good", [1.0, 0.0]),
        {"id": "bad", "user_id": "user-1", "content": "x", "embedding": "{not json"},
        {"id": "empty", "user_id": "user-1", "content": "x", "embedding": "[]"},
    ])
    service = _service(store, FakeEmbedder())

    chunks = await service.reload("user-1")

    assert [c.id for c in chunks] == ["good"]


@pytest.mark.asyncio
async def test_search_dimension_mismatch_propagates():
    store = FakeStore([_row("old-model", [1.0, 0.0, 0.0])])
    service = _service(store, FakeEmbedder(default=[1.0, 0.0]))

    with pytest.raises(DimensionMismatchError):
        await service.search("user-1", "budget")


@pytest.mark.asyncio
async def test_store_persists_and_appends_to_warm_cache():
    store = FakeStore([_row("existing", [1.0, 0.0])])
    service = _service(store, FakeEmbedder(default=[0.0, 1.0]))
    await service.ensure_loaded("user-1")

    chunk = await service.store("user-1", "New offsite venue", {"title": "Offsite", "importance": 0.8})

    assert chunk is not None
    assert chunk.user_id == "user-1"
    assert store.inserted[0]["id"] == chunk.id
    assert [c.id for c in service.cache.get("user-1")] == ["existing", chunk.id]


@pytest.mark.asyncio
async def test_store_truncates_content():
    store = FakeStore()
    service = VectorSearchService(
        FakeEmbedder(default=[1.0]), VectorCache(), load_rows=store.load, insert_row=store.insert,
        max_chunk_chars=10,
    )

    chunk = await service.store("user-1", "x" * 50)

    assert chunk.content == "x" * 10


@pytest.mark.asyncio
async def test_store_cold_cache_is_not_populated():
    """With no warm entry the chunk only goes to the durable store."""
    store = FakeStore()
    service = _service(store, FakeEmbedder(default=[1.0, 0.0]))

    chunk = await service.store("user-1", "hello")

    assert chunk is not None
    assert service.cache.get("user-1") is None
    assert len(store.inserted) == 1


@pytest.mark.asyncio
async def test_store_without_embedding_returns_none():
    store = FakeStore()
    service = _service(store, FakeEmbedder(default=None))

    assert await service.store("user-1", "hello") is None
    assert store.inserted == []


@pytest.mark.asyncio
async def test_store_insert_failure_leaves_cache_untouched():
    store = FakeStore([_row("existing", [1.0, 0.0])], fail_writes=True)
    service = _service(store, FakeEmbedder(default=[1.0, 0.0]))
    await service.ensure_loaded("user-1")

    assert await service.store("user-1", "hello") is None
    assert [c.id for c in service.cache.get("user-1")] == ["existing"]


@pytest.mark.asyncio
async def test_store_rejects_invalid_metadata():
    service = _service(FakeStore(), FakeEmbedder(default=[1.0]))

    with pytest.raises(ValidationError):
        await service.store("user-1", "hello", {"importance": 2.0})


def test_keyword_matches_respects_limit_and_owner():
    chunks = [
        make_chunk("a", [1.0], content="budget one"),
        make_chunk("b", [1.0], user_id="user-2", content="budget two"),
        make_chunk("c", [1.0], content="budget three"),
        make_chunk("d", [1.0], content="budget four"),
    ]

    assert [c.id for c in keyword_matches(chunks, "budget", "user-1", limit=2)] == ["a", "c"]
    assert keyword_matches(chunks, "an is", "user-1", limit=5) == []
