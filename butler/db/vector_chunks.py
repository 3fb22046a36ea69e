"""Database operations for the durable copy of vector chunks.

The in-memory VectorCache is rebuilt from this table; nothing here is
cached.
"""

from typing import Any

from butler.core.logging import get_logger
from butler.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "vector_chunks"
PAGE_SIZE = 1000


def list_vector_chunk_rows(user_id: str) -> list[dict[str, Any]]:
    """
    Read every stored chunk (content + embedding) for a user.

    Pages through the table since PostgREST caps a single response.

    Args:
        user_id: Owner of the chunks

    Returns:
        Raw rows in insertion order

    Raises:
        Exception: If the query fails (the cache reload decides what to do)
    """
    supabase = get_supabase()
    rows: list[dict[str, Any]] = []
    start = 0

    while True:
        response = (
            supabase.table(TABLE)
            .select("id, user_id, content, embedding, title, metadata, created_at")
            .eq("user_id", user_id)
            .order("created_at")
            .range(start, start + PAGE_SIZE - 1)
            .execute()
        )
        page = response.data or []
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            break
        start += PAGE_SIZE

    logger.debug(f"Loaded {len(rows)} vector chunk rows for user {user_id}")
    return rows


def insert_vector_chunk_row(row: dict[str, Any]) -> dict[str, Any]:
    """
    Insert one chunk row.

    Returns:
        The inserted row as returned by Supabase

    Raises:
        ValueError: If Supabase returned no row
    """
    supabase = get_supabase()
    response = supabase.table(TABLE).insert(row).execute()
    if not response.data:
        raise ValueError(f"Failed to insert vector chunk {row.get('id')}")
    return response.data[0]
