"""Context gathering and vector search endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from butler.api.deps import get_butler
from butler.context.models import VectorChunk
from butler.core.butler import ContextButler
from butler.core.logging import get_logger
from butler.core.schemas_context import (
    GatherContextRequest,
    GatherContextResponse,
    StoreChunkRequest,
    VectorSearchRequest,
    VectorSearchResponse,
)
from butler.core.similarity import DimensionMismatchError

logger = get_logger(__name__)

router = APIRouter()


@router.post("/context/gather", response_model=GatherContextResponse)
async def gather_context(
    request: GatherContextRequest,
    butler: ContextButler = Depends(get_butler),
) -> GatherContextResponse:
    """
    Gather context relevant to a chat message.

    Never fails on retrieval problems: an empty bundle with confidence 0 is
    returned instead.
    """
    bundle = await butler.gather_relevant_context(
        request.message,
        request.user_id,
        conversation_id=request.conversation_id,
        project_id=request.project_id,
    )
    return GatherContextResponse(bundle=bundle, formatted=butler.format_context_for_ai(bundle))


@router.post("/context/search", response_model=VectorSearchResponse)
async def search_vectors(
    request: VectorSearchRequest,
    butler: ContextButler = Depends(get_butler),
) -> VectorSearchResponse:
    """Semantic search over the user's stored vector chunks."""
    try:
        results = await butler.vector_search(
            request.user_id,
            request.query,
            limit=request.limit,
            threshold=request.threshold,
        )
    except DimensionMismatchError as e:
        logger.error(f"Vector search failed for user {request.user_id}: {e}")
        raise HTTPException(status_code=500, detail="Stored embeddings do not match the configured model") from e

    return VectorSearchResponse(results=results)


@router.post("/context/chunks", response_model=VectorChunk, status_code=201)
async def store_chunk(
    request: StoreChunkRequest,
    butler: ContextButler = Depends(get_butler),
) -> VectorChunk:
    """Embed and persist content as a vector chunk."""
    try:
        chunk = await butler.store_vector_chunk(request.user_id, request.content, request.metadata)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e

    if chunk is None:
        raise HTTPException(status_code=502, detail="Failed to embed or persist chunk")
    return chunk
