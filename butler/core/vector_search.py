"""RAG vector search over the per-user vector cache.

Usage:
    service = VectorSearchService(embedder, VectorCache())
    chunks = await service.search(user_id, "budget for the Q3 offsite", limit=5)

Reads go through the cache; a miss or an expired entry triggers a full
reload of the user's chunks from the durable store. When no query
embedding can be produced the search degrades to keyword matching over the
same cached chunks instead of failing.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Sequence

from butler.context.entity_extractor import extract_keywords
from butler.context.models import MAX_CHUNK_CHARS, ChunkMetadata, VectorChunk
from butler.core.embeddings import EmbeddingClient, embed_with_timeout
from butler.core.logging import get_logger, log_with_context
from butler.core.similarity import rank_and_filter
from butler.core.vector_cache import VectorCache
from butler.db.vector_chunks import insert_vector_chunk_row, list_vector_chunk_rows

logger = get_logger(__name__)


def keyword_matches(
    candidates: Sequence[VectorChunk],
    query: str,
    user_id: str,
    limit: int,
) -> list[VectorChunk]:
    """Chunks whose title or content contains any query keyword, in insertion order."""
    keywords = extract_keywords(query)
    if not keywords or limit <= 0:
        return []

    matches: list[VectorChunk] = []
    for chunk in candidates:
        if chunk.user_id != user_id:
            continue
        haystack = f"{chunk.metadata.title} {chunk.content}".lower()
        if any(keyword in haystack for keyword in keywords):
            matches.append(chunk)
            if len(matches) >= limit:
                break
    return matches


class VectorSearchService:
    """Semantic search backed by VectorCache and the vector_chunks table."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        cache: VectorCache,
        load_rows: Callable[[str], list[dict[str, Any]]] = list_vector_chunk_rows,
        insert_row: Callable[[dict[str, Any]], Any] = insert_vector_chunk_row,
        embedding_timeout: float = 3.0,
        max_chunk_chars: int = MAX_CHUNK_CHARS,
    ):
        self.embedder = embedder
        self.cache = cache
        self._load_rows = load_rows
        self._insert_row = insert_row
        self.embedding_timeout = embedding_timeout
        self.max_chunk_chars = max_chunk_chars

    async def reload(self, user_id: str) -> tuple[VectorChunk, ...]:
        """
        Replace the user's cache entry with a full load from the store.

        Malformed rows are skipped and logged; the reload still succeeds.

        Raises:
            Exception: If the store read itself fails
        """
        started = time.perf_counter()
        rows = await asyncio.to_thread(self._load_rows, user_id)

        chunks: list[VectorChunk] = []
        skipped = 0
        for row in rows:
            try:
                chunks.append(VectorChunk.from_row(row))
            except (ValueError, TypeError, KeyError) as e:
                skipped += 1
                logger.warning(f"Skipping malformed vector chunk {row.get('id')}: {e}")

        entry = self.cache.put(user_id, chunks)
        log_with_context(
            logger,
            logging.INFO,
            f"Loaded {len(entry.chunks)} vectors into cache",
            user_id=user_id,
            skipped=skipped,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        return entry.chunks

    async def ensure_loaded(self, user_id: str) -> tuple[VectorChunk, ...]:
        """Cached chunks for the user, reloading on a miss or expiry."""
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached
        return await self.reload(user_id)

    async def _candidates(self, user_id: str) -> tuple[VectorChunk, ...]:
        try:
            return await self.ensure_loaded(user_id)
        except Exception as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Vector cache reload failed, searching without stored vectors: {e}",
                user_id=user_id,
            )
            return ()

    async def search_by_embedding(
        self,
        user_id: str,
        embedding: Sequence[float],
        limit: int = 10,
        threshold: float = 0.7,
    ) -> list[VectorChunk]:
        """
        Rank the user's cached chunks against an existing query embedding.

        Raises:
            DimensionMismatchError: If stored and query embeddings differ in size
        """
        candidates = await self._candidates(user_id)
        return rank_and_filter(candidates, embedding, threshold, limit, user_id=user_id)

    async def search(
        self,
        user_id: str,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
    ) -> list[VectorChunk]:
        """
        Semantic search for a free-text query.

        Args:
            user_id: Only this user's chunks are considered
            query: Free-text query
            limit: Max chunks returned
            threshold: Minimum cosine similarity

        Returns:
            Chunks by descending similarity; keyword matches when the query
            could not be embedded

        Raises:
            DimensionMismatchError: If stored and query embeddings differ in size
        """
        candidates, embedding = await asyncio.gather(
            self._candidates(user_id),
            embed_with_timeout(self.embedder, query, self.embedding_timeout),
        )

        if embedding is None:
            matches = keyword_matches(candidates, query, user_id, limit)
            log_with_context(
                logger,
                logging.INFO,
                f"No query embedding, keyword fallback returned {len(matches)} chunks",
                user_id=user_id,
            )
            return matches

        return rank_and_filter(candidates, embedding, threshold, limit, user_id=user_id)

    async def store(
        self,
        user_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> VectorChunk | None:
        """
        Embed and persist new content as a vector chunk.

        The chunk is appended to the user's cache entry when one is warm;
        otherwise the next search picks it up on reload.

        Returns:
            The stored chunk, or None if embedding or persistence failed

        Raises:
            ValidationError: If metadata is invalid (e.g. importance outside 0-1)
        """
        content = content[: self.max_chunk_chars]
        fields = {k: v for k, v in (metadata or {}).items() if k != "userId"}
        fields["user_id"] = user_id
        chunk_metadata = ChunkMetadata.model_validate(fields)

        embedding = await self.embedder.embed(content)
        if embedding is None:
            logger.warning(f"Not storing vector chunk for user {user_id}: no embedding")
            return None

        chunk = VectorChunk(content=content, embedding=embedding, metadata=chunk_metadata)

        try:
            await asyncio.to_thread(self._insert_row, chunk.to_row())
        except Exception as e:
            logger.error(f"Failed to persist vector chunk {chunk.id}: {e}")
            return None

        self.cache.append(user_id, chunk)
        return chunk
