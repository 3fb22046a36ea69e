"""Tests for the per-user vector cache and its TTL policy."""

from butler.core.vector_cache import VectorCache
from tests.fakes.fake_embedder import make_chunk


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_get_miss_then_hit():
    cache = VectorCache(ttl_seconds=60, clock=FakeClock())
    chunk = make_chunk("c1", [1.0, 0.0])

    assert cache.get("user-1") is None
    cache.put("user-1", [chunk])

    assert cache.get("user-1") == (chunk,)
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_expired_entry_is_never_served():
    clock = FakeClock()
    cache = VectorCache(ttl_seconds=60, clock=clock)
    cache.put("user-1", [make_chunk("c1", [1.0, 0.0])])

    clock.now += 59
    assert cache.get("user-1") is not None

    clock.now += 1
    assert cache.get("user-1") is None
    assert cache.stats()["users"] == 0


def test_put_replaces_entry():
    cache = VectorCache(ttl_seconds=60, clock=FakeClock())
    cache.put("user-1", [make_chunk("old", [1.0, 0.0])])
    cache.put("user-1", [make_chunk("new", [0.0, 1.0])])

    assert [c.id for c in cache.get("user-1")] == ["new"]


def test_append_extends_valid_entry_keeping_expiry():
    clock = FakeClock()
    cache = VectorCache(ttl_seconds=60, clock=clock)
    first = cache.put("user-1", [make_chunk("c1", [1.0, 0.0])])

    clock.now += 30
    assert cache.append("user-1", make_chunk("c2", [0.0, 1.0])) is True

    assert [c.id for c in cache.get("user-1")] == ["c1", "c2"]

    # Appending does not extend the lifetime
    clock.now = first.expiry
    assert cache.get("user-1") is None


def test_append_without_entry_is_noop():
    clock = FakeClock()
    cache = VectorCache(ttl_seconds=60, clock=clock)

    assert cache.append("user-1", make_chunk("c1", [1.0, 0.0])) is False
    assert cache.get("user-1") is None

    cache.put("user-1", [])
    clock.now += 61
    assert cache.append("user-1", make_chunk("c2", [1.0, 0.0])) is False


def test_invalidate_one_user_and_all():
    cache = VectorCache(ttl_seconds=60, clock=FakeClock())
    cache.put("user-1", [make_chunk("c1", [1.0, 0.0])])
    cache.put("user-2", [make_chunk("c2", [1.0, 0.0], user_id="user-2")])

    assert cache.invalidate("user-1") == 1
    assert cache.invalidate("user-1") == 0
    assert cache.get("user-2") is not None

    assert cache.invalidate() == 1
    assert cache.stats()["users"] == 0


def test_stats_counts_chunks():
    cache = VectorCache(ttl_seconds=120, clock=FakeClock())
    cache.put("user-1", [make_chunk("a", [1.0]), make_chunk("b", [1.0])])

    stats = cache.stats()
    assert stats["users"] == 1
    assert stats["chunks"] == 2
    assert stats["ttl_seconds"] == 120
