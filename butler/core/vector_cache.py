"""Per-user in-memory cache of vector chunks with a TTL.

One instance lives on the ContextButler service for the lifetime of the
process. Entries are immutable and replaced by a single dict assignment, so
a concurrent reader sees either the old complete set or the new complete
set, never a partial load.

Two concurrent misses for the same user may both reload from the durable
store; the last writer wins. Both reloads read the same source, so no lock
is taken.
"""

import time
from dataclasses import dataclass
from typing import Callable, Iterable

from butler.context.models import VectorChunk
from butler.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


@dataclass(frozen=True)
class CacheEntry:
    """A user's complete chunk set and when it stops being servable."""

    chunks: tuple[VectorChunk, ...]
    loaded_at: float
    expiry: float

    def is_valid(self, now: float) -> bool:
        return now < self.expiry


class VectorCache:
    """Keyed store of per-user chunk sets with an explicit TTL policy."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, user_id: str) -> tuple[VectorChunk, ...] | None:
        """
        Return the user's cached chunks, or None on a miss.

        An expired entry counts as a miss and is dropped, so stale data is
        never served.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            self._misses += 1
            return None

        if not entry.is_valid(self._clock()):
            logger.debug(f"Vector cache expired for user {user_id}")
            # Only drop the entry we judged stale, not a fresher replacement
            if self._entries.get(user_id) is entry:
                del self._entries[user_id]
            self._misses += 1
            return None

        self._hits += 1
        return entry.chunks

    def put(self, user_id: str, chunks: Iterable[VectorChunk]) -> CacheEntry:
        """Replace the user's entry with a freshly loaded chunk set."""
        now = self._clock()
        entry = CacheEntry(chunks=tuple(chunks), loaded_at=now, expiry=now + self.ttl_seconds)
        self._entries[user_id] = entry
        return entry

    def append(self, user_id: str, chunk: VectorChunk) -> bool:
        """
        Add one chunk to a valid entry, keeping its expiry.

        Returns False (and changes nothing) when the user has no valid
        entry; the next read reloads from the durable store anyway.
        """
        entry = self._entries.get(user_id)
        if entry is None or not entry.is_valid(self._clock()):
            return False

        self._entries[user_id] = CacheEntry(
            chunks=entry.chunks + (chunk,),
            loaded_at=entry.loaded_at,
            expiry=entry.expiry,
        )
        return True

    def invalidate(self, user_id: str | None = None) -> int:
        """
        Drop one user's entry, or every entry when user_id is None.

        Returns:
            Number of entries dropped
        """
        if user_id is None:
            count = len(self._entries)
            self._entries = {}
            logger.info(f"Vector cache cleared ({count} users)")
            return count

        return 1 if self._entries.pop(user_id, None) is not None else 0

    def stats(self) -> dict:
        """Snapshot of cache size and hit/miss counters."""
        entries = list(self._entries.values())
        return {
            "users": len(entries),
            "chunks": sum(len(e.chunks) for e in entries),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self.ttl_seconds,
        }
