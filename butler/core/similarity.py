"""
Vector similarity for RAG ranking.

Cosine similarity over embedding vectors plus the rank-and-filter step used
by the vector search path.

Usage:
    from butler.core.similarity import rank_and_filter

    chunks = rank_and_filter(
        candidates=cached_chunks,
        query_vector=query_embedding,
        threshold=0.7,
        limit=10,
        user_id="user-123",
    )
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from butler.context.models import VectorChunk
from butler.core.logging import get_logger

logger = get_logger(__name__)


class DimensionMismatchError(ValueError):
    """Raised when two vectors of different length are compared.

    Signals an embedding model/version mismatch between stored chunks and
    the query, which has to be fixed upstream.
    """


@dataclass
class ScoredChunk:
    """A candidate chunk with its similarity to the query."""

    chunk: VectorChunk
    similarity: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1.0, 1.0]; 0.0 if either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Vector dimensions must match: {len(a)} != {len(b)}"
        )

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0

    # Clip float noise so identical vectors don't land at 1.0000000002
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def score_candidates(
    candidates: Iterable[VectorChunk],
    query_vector: Sequence[float],
    user_id: str | None = None,
) -> list[ScoredChunk]:
    """
    Score every candidate owned by ``user_id`` against the query.

    Candidates of other users are skipped, never scored. Output keeps the
    candidates' insertion order.
    """
    scored: list[ScoredChunk] = []
    for chunk in candidates:
        if user_id is not None and chunk.user_id != user_id:
            continue
        scored.append(ScoredChunk(chunk=chunk, similarity=cosine_similarity(query_vector, chunk.embedding)))
    return scored


def rank_and_filter_scored(
    candidates: Iterable[VectorChunk],
    query_vector: Sequence[float],
    threshold: float,
    limit: int,
    user_id: str | None = None,
) -> list[ScoredChunk]:
    """Like rank_and_filter, but keeps the similarity next to each chunk."""
    if limit <= 0:
        return []

    kept = [
        sc for sc in score_candidates(candidates, query_vector, user_id)
        if sc.similarity >= threshold
    ]
    # sorted() is stable, so equal scores keep insertion order
    ranked = sorted(kept, key=lambda sc: sc.similarity, reverse=True)
    return ranked[:limit]


def rank_and_filter(
    candidates: Iterable[VectorChunk],
    query_vector: Sequence[float],
    threshold: float,
    limit: int,
    user_id: str | None = None,
) -> list[VectorChunk]:
    """
    Rank candidate chunks by similarity to the query vector.

    Args:
        candidates: Chunks to rank, in insertion order
        query_vector: Query embedding
        threshold: Minimum similarity to keep a candidate
        limit: Max chunks returned
        user_id: Only candidates owned by this user are considered

    Returns:
        Chunks sorted by descending similarity (ties in insertion order)

    Raises:
        DimensionMismatchError: If a candidate's embedding differs in length
    """
    return [
        sc.chunk
        for sc in rank_and_filter_scored(candidates, query_vector, threshold, limit, user_id)
    ]
