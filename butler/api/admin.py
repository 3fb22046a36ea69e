"""Admin endpoints for the in-process caches."""

from fastapi import APIRouter, Depends, Query

from butler.api.deps import get_butler
from butler.core.butler import ContextButler
from butler.core.logging import get_logger
from butler.core.schemas_context import ClearCacheResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/vector-cache")
async def get_cache_stats(butler: ContextButler = Depends(get_butler)) -> dict:
    """Vector and embedding cache counters."""
    return butler.cache_stats()


@router.delete("/vector-cache", response_model=ClearCacheResponse)
async def clear_vector_cache(
    user_id: str | None = Query(None, description="Clear one user; omit to clear everyone"),
    butler: ContextButler = Depends(get_butler),
) -> ClearCacheResponse:
    """Drop cached vectors so the next search reloads from the store."""
    cleared = butler.clear_vector_cache(user_id)
    logger.info(f"Cleared {cleared} vector cache entries (user_id={user_id or 'all'})")
    return ClearCacheResponse(cleared=cleared)
