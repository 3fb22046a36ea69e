"""OpenAI embeddings for context retrieval.

Embedding failures never abort a request: the client returns None and the
caller degrades to keyword-only matching.
"""

import asyncio
import hashlib
import time
from collections import OrderedDict
from typing import Callable

from openai import AsyncOpenAI

from butler.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_INPUT_CHARS = 8000


class EmbeddingCache:
    """
    LRU cache of query embeddings keyed by content hash.

    Repeated utterances ("what's on my calendar today") skip the provider
    round-trip entirely.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 24 * 60 * 60,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.max_input_chars = max_input_chars
        self._clock = clock
        self._entries: OrderedDict[str, tuple[list[float], float]] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def key_for(self, text: str) -> str:
        normalized = text.strip().lower()[: self.max_input_chars]
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def get(self, text: str) -> list[float] | None:
        key = self.key_for(text)
        item = self._entries.get(key)
        if item is None:
            self.misses += 1
            return None

        embedding, stored_at = item
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return embedding

    def put(self, text: str, embedding: list[float]) -> None:
        key = self.key_for(text)
        self._entries[key] = (embedding, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
            self.evictions += 1

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": round(self.hits / total, 3) if total else 0.0,
        }


class EmbeddingClient:
    """Async OpenAI embeddings with input truncation and fail-open errors."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        cache: EmbeddingCache | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self.max_input_chars = max_input_chars
        self.cache = cache
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        """Get OpenAI client instance (created on first use)."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def embed(self, text: str) -> list[float] | None:
        """
        Generate an embedding for a single text.

        Args:
            text: Text to embed; truncated to max_input_chars

        Returns:
            Embedding vector, or None if the text is blank or the provider
            call failed for any reason
        """
        if not text or not text.strip():
            return None

        truncated = text[: self.max_input_chars]

        if self.cache is not None:
            cached = self.cache.get(truncated)
            if cached is not None:
                return cached

        try:
            response = await self._get_client().embeddings.create(
                model=self.model,
                input=truncated,
                dimensions=self.dimensions,
            )
            embedding = list(response.data[0].embedding)
        except Exception as e:
            logger.warning(f"Embedding request failed, continuing without: {e}")
            return None

        if len(embedding) != self.dimensions:
            logger.error(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(embedding)}",
                extra={"extra_data": {"model": self.model}},
            )
            return None

        if self.cache is not None:
            self.cache.put(truncated, embedding)

        return embedding


async def embed_with_timeout(
    embedder: EmbeddingClient,
    text: str,
    timeout: float = 3.0,
) -> list[float] | None:
    """Race an embedding call against a timeout; the timeout yields None."""
    try:
        return await asyncio.wait_for(embedder.embed(text), timeout=timeout)
    except TimeoutError:
        logger.warning(f"Embedding timed out after {timeout}s, using keyword matching only")
        return None
