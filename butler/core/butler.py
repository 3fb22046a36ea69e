"""The Butler: automatic context retrieval for chat messages.

Pipeline: extract hints → decide gather/skip → embed (3 s cap) → fan out to
every source (10 s cap) → score → bundle.

The service is fail-open. Missing context must never break a chat reply,
so gather_relevant_context() always returns a bundle, empty when anything
unexpected goes wrong.

Usage:
    butler = build_butler(get_settings())    # once, at startup

    bundle = await butler.gather_relevant_context(message, user_id)
    prompt_context = butler.format_context_for_ai(bundle)
"""

import logging
import time
from typing import Any, Awaitable, Callable, Sequence

from butler.context.entity_extractor import extract_entities, extract_keywords
from butler.context.intent_classifier import classify_intent, decide_gather
from butler.context.models import ContextBundle, ScopeFilters, VectorChunk
from butler.core.config import Settings
from butler.core.confidence import (
    DEFAULT_MAX_EXPECTED_SOURCES,
    calculate_confidence,
    identify_sources,
)
from butler.core.context_format import format_context_for_ai
from butler.core.embeddings import EmbeddingCache, EmbeddingClient, embed_with_timeout
from butler.core.fanout import Deadline, fan_out
from butler.core.logging import get_logger, log_with_context
from butler.core.vector_cache import VectorCache
from butler.core.vector_search import VectorSearchService
from butler.db.projects import fetch_project_context
from butler.db.sources import SourceAdapter, default_source_adapters

logger = get_logger(__name__)

ProjectLoader = Callable[[str, str], Awaitable[dict[str, Any] | None]]

VECTOR_SOURCE = "vector_store"
PROJECT_SOURCE = "project"

# Adapter name -> ContextBundle field
BUNDLE_FIELDS = {
    "knowledge": "relevant_knowledge",
    "memory": "relevant_memories",
    "files": "relevant_files",
    "emails": "relevant_emails",
    "calendar": "relevant_calendar_events",
    "activity": "recent_activity",
}


class ContextButler:
    """Process-wide context retrieval service; owns the vector cache via vector_search."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_search: VectorSearchService,
        adapters: Sequence[SourceAdapter] | None = None,
        project_loader: ProjectLoader | None = fetch_project_context,
        *,
        embedding_timeout: float = 3.0,
        gather_timeout: float = 10.0,
        max_expected_sources: int = DEFAULT_MAX_EXPECTED_SOURCES,
        vector_limit: int = 5,
        vector_threshold: float = 0.7,
    ):
        self.embedder = embedder
        self.vector_search_service = vector_search
        self.adapters = list(adapters) if adapters is not None else default_source_adapters()
        self.project_loader = project_loader
        self.embedding_timeout = embedding_timeout
        self.gather_timeout = gather_timeout
        self.max_expected_sources = max_expected_sources
        self.vector_limit = vector_limit
        self.vector_threshold = vector_threshold

    @property
    def cache(self) -> VectorCache:
        return self.vector_search_service.cache

    async def gather_relevant_context(
        self,
        user_message: str,
        user_id: str,
        conversation_id: str | None = None,
        project_id: str | None = None,
    ) -> ContextBundle:
        """
        Gather context relevant to a user message from every source.

        Args:
            user_message: Raw utterance
            user_id: Owner of all data searched
            conversation_id: Narrows memory chunks to one conversation
            project_id: Explicit project scope; always forces a gather

        Returns:
            ContextBundle; empty (confidence 0) on fast-path skip or failure
        """
        try:
            return await self._gather(user_message, user_id, conversation_id, project_id)
        except Exception:
            logger.exception(f"Context gathering failed for user {user_id}, continuing without context")
            return ContextBundle.empty()

    async def _gather(
        self,
        user_message: str,
        user_id: str,
        conversation_id: str | None,
        project_id: str | None,
    ) -> ContextBundle:
        started = time.perf_counter()

        entities = extract_entities(user_message)
        keywords = extract_keywords(user_message)
        intent = classify_intent(user_message)

        rule = decide_gather(user_message, intent, entities, project_id)
        if not rule.verdict:
            log_with_context(
                logger,
                logging.INFO,
                "Fast-path: skipping context gathering",
                user_id=user_id,
                intent=intent.value,
                rule=rule.name,
            )
            return ContextBundle.empty()

        embedding = await embed_with_timeout(self.embedder, user_message, self.embedding_timeout)

        scope = ScopeFilters(project_id=project_id, conversation_id=conversation_id)
        calls: dict[str, Awaitable[Any]] = {
            adapter.name: adapter.fetch(user_id, keywords, entities, scope)
            for adapter in self.adapters
        }
        if embedding is not None:
            calls[VECTOR_SOURCE] = self.vector_search_service.search_by_embedding(
                user_id, embedding, limit=self.vector_limit, threshold=self.vector_threshold
            )
        if project_id and self.project_loader is not None:
            calls[PROJECT_SOURCE] = self.project_loader(user_id, project_id)

        outcome = await fan_out(calls, Deadline(self.gather_timeout), user_id=user_id)

        fields: dict[str, list] = {
            field: list(outcome.get(name) or [])
            for name, field in BUNDLE_FIELDS.items()
        }
        vector_matches: list[VectorChunk] = list(outcome.get(VECTOR_SOURCE) or [])

        confidence = calculate_confidence(
            len(fields["relevant_knowledge"]),
            len(fields["relevant_memories"]),
            len(fields["relevant_files"]),
            len(fields["relevant_emails"]),
            len(fields["relevant_calendar_events"]),
            max_expected_sources=self.max_expected_sources,
        )
        sources = identify_sources(
            fields["relevant_knowledge"],
            fields["relevant_memories"],
            fields["relevant_files"],
            fields["relevant_emails"],
            fields["relevant_calendar_events"],
            vector_matches,
        )

        bundle = ContextBundle(
            **fields,
            vector_matches=vector_matches,
            project_context=outcome.get(PROJECT_SOURCE),
            confidence=confidence,
            sources=sources,
        )

        log_with_context(
            logger,
            logging.INFO,
            f"Gathered context from {len(sources)} sources",
            user_id=user_id,
            intent=intent.value,
            rule=rule.name,
            confidence=round(confidence, 1),
            complete=outcome.complete,
            embedded=embedding is not None,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        return bundle

    def format_context_for_ai(self, bundle: ContextBundle) -> str:
        """Prompt-ready rendering of a bundle (pure)."""
        return format_context_for_ai(bundle)

    async def vector_search(
        self,
        user_id: str,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
    ) -> list[VectorChunk]:
        """Standalone RAG search without the multi-source fan-out."""
        return await self.vector_search_service.search(user_id, query, limit=limit, threshold=threshold)

    async def store_vector_chunk(
        self,
        user_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> VectorChunk | None:
        """Embed and persist content for later vector search."""
        return await self.vector_search_service.store(user_id, content, metadata)

    def clear_vector_cache(self, user_id: str | None = None) -> int:
        """Administrative: drop cached vectors for one user or everyone."""
        return self.cache.invalidate(user_id)

    def cache_stats(self) -> dict:
        stats = {"vector_cache": self.cache.stats()}
        if self.embedder.cache is not None:
            stats["embedding_cache"] = self.embedder.cache.stats()
        return stats


def build_butler(settings: Settings) -> ContextButler:
    """Wire the production Butler from settings. No network calls happen here."""
    embedder = EmbeddingClient(
        api_key=settings.OPENAI_API_KEY,
        model=settings.EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIM,
        max_input_chars=settings.EMBEDDING_MAX_INPUT_CHARS,
        cache=EmbeddingCache(
            max_size=settings.EMBEDDING_CACHE_SIZE,
            ttl_seconds=settings.EMBEDDING_CACHE_TTL_SECONDS,
            max_input_chars=settings.EMBEDDING_MAX_INPUT_CHARS,
        ),
    )
    vector_search = VectorSearchService(
        embedder,
        VectorCache(ttl_seconds=settings.VECTOR_CACHE_TTL_SECONDS),
        embedding_timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
        max_chunk_chars=settings.VECTOR_CHUNK_MAX_CHARS,
    )
    return ContextButler(
        embedder,
        vector_search,
        embedding_timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
        gather_timeout=settings.GATHER_TIMEOUT_SECONDS,
        max_expected_sources=settings.CONFIDENCE_MAX_SOURCES,
        vector_limit=settings.VECTOR_SEARCH_LIMIT,
        vector_threshold=settings.VECTOR_SEARCH_THRESHOLD,
    )
