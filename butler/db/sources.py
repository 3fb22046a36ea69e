"""Source adapters: per-store candidate lookups for context gathering.

Every adapter answers the same question: "top few rows for this user that
look related to these keywords". They are declared as data so a new source
is one table row below, not a new function.

Each adapter:
- always filters by user_id (cross-user leakage is a bug, not a tradeoff)
- OR-matches keywords with ilike across a small set of text columns
- orders by priority (importance, then recency) and caps at 2-3 rows to
  bound fan-out latency and prompt size
- returns [] on no match or on any query error
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from butler.context.models import ScopeFilters
from butler.core.logging import get_logger, log_with_context
from butler.db.supabase_client import get_supabase

logger = get_logger(__name__)


def keyword_filter(keywords: Sequence[str], columns: Sequence[str]) -> str:
    """Build a PostgREST or-filter matching any keyword in any column."""
    return ",".join(
        f"{column}.ilike.%{keyword}%"
        for keyword in keywords
        for column in columns
    )


@dataclass(frozen=True)
class SourceAdapter:
    """Declarative description of one context source."""

    name: str
    table: str
    limit: int
    text_columns: tuple[str, ...] = ("title", "content")
    source_type: str | None = None
    order_by: tuple[str, ...] = ("created_at",)
    window: timedelta | None = None
    # "tags" (array contains project id) or "project_id" (column equals)
    project_filter: str | None = None
    conversation_filter: bool = False

    def build_query(
        self,
        client: Any,
        user_id: str,
        keywords: Sequence[str],
        scope: ScopeFilters,
        now: datetime,
    ) -> Any:
        """Assemble the Supabase query builder chain (not executed)."""
        query = client.table(self.table).select("*").eq("user_id", user_id)

        if self.source_type:
            query = query.eq("source_type", self.source_type)

        if scope.project_id:
            if self.project_filter == "tags":
                query = query.contains("tags", [scope.project_id])
            elif self.project_filter == "project_id":
                query = query.eq("project_id", scope.project_id)

        if self.conversation_filter and scope.conversation_id:
            query = query.eq("conversation_id", scope.conversation_id)

        since = scope.since or (now - self.window if self.window else None)
        if since is not None:
            query = query.gte("created_at", since.isoformat())

        if keywords and self.text_columns:
            query = query.or_(keyword_filter(keywords, self.text_columns))

        for column in self.order_by:
            query = query.order(column, desc=True)

        return query.limit(self.limit)

    def query(
        self,
        user_id: str,
        keywords: Sequence[str],
        scope: ScopeFilters,
    ) -> list[dict[str, Any]]:
        """Run the query synchronously. Raises on store errors."""
        now = datetime.now(timezone.utc)
        response = self.build_query(get_supabase(), user_id, keywords, scope, now).execute()
        return list(response.data or [])

    async def fetch(
        self,
        user_id: str,
        keywords: Sequence[str],
        entities: Sequence[str],
        scope: ScopeFilters | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch this source's top candidates for a user.

        Args:
            user_id: Owner of the rows (mandatory)
            keywords: Keyword hints; OR-matched across text columns
            entities: Entity hints; accepted for a uniform contract, the
                keyword list already carries the matching terms
            scope: Optional project/conversation/time narrowing

        Returns:
            Up to ``limit`` rows, [] on no match or error
        """
        if not user_id:
            logger.warning(f"Source {self.name} called without user_id, skipping")
            return []

        try:
            rows = await asyncio.to_thread(self.query, user_id, list(keywords), scope or ScopeFilters())
        except Exception as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Source query failed: {e}",
                user_id=user_id,
                source=self.name,
            )
            return []

        log_with_context(
            logger,
            logging.DEBUG,
            f"Source returned {len(rows)} rows",
            user_id=user_id,
            source=self.name,
        )
        return rows


KNOWLEDGE = SourceAdapter(
    name="knowledge",
    table="knowledge_base",
    limit=3,
    order_by=("importance", "created_at"),
)

MEMORY = SourceAdapter(
    name="memory",
    table="memory_chunks",
    limit=2,
    text_columns=("content",),
    order_by=("importance", "created_at"),
    conversation_filter=True,
)

FILES = SourceAdapter(
    name="files",
    table="knowledge_base",
    limit=2,
    source_type="drive",
    project_filter="tags",
)

EMAILS = SourceAdapter(
    name="emails",
    table="knowledge_base",
    limit=2,
    source_type="email",
    project_filter="tags",
)

CALENDAR = SourceAdapter(
    name="calendar",
    table="knowledge_base",
    limit=2,
    source_type="calendar",
    window=timedelta(days=7),
)

RECENT_ACTIVITY = SourceAdapter(
    name="activity",
    table="messages",
    limit=3,
    text_columns=(),
    window=timedelta(hours=24),
    project_filter="project_id",
)


def default_source_adapters() -> list[SourceAdapter]:
    """Adapters queried on every gather, in bundle order."""
    return [KNOWLEDGE, MEMORY, FILES, EMAILS, CALENDAR, RECENT_ACTIVITY]
