"""Read access to per-user project metadata."""

import asyncio
from typing import Any

from butler.core.logging import get_logger
from butler.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_project(user_id: str, project_id: str) -> dict[str, Any] | None:
    """
    Get a project owned by the user.

    Returns:
        Project row, or None if missing or owned by someone else
    """
    supabase = get_supabase()
    response = (
        supabase.table("projects")
        .select("*")
        .eq("id", project_id)
        .eq("user_id", user_id)
        .maybe_single()
        .execute()
    )
    # maybe_single() yields None (or data=None) when no row exists
    if response is None:
        return None
    return response.data


async def fetch_project_context(user_id: str, project_id: str) -> dict[str, Any] | None:
    """Project row for the context bundle; None on any error."""
    try:
        return await asyncio.to_thread(get_project, user_id, project_id)
    except Exception as e:
        logger.warning(f"Failed to get project context for {project_id}: {e}")
        return None
