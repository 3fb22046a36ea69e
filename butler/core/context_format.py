"""Format a context bundle for LLM prompt injection.

Section order is fixed and output depends only on the bundle, so identical
bundles produce byte-identical prompts (upstream prompt caching relies on
this).
"""

import math
from typing import Any

from butler.context.models import ContextBundle

PREVIEW_CHARS = 100
ACTIVITY_PREVIEW_CHARS = 80
MAX_ACTIVITY_ITEMS = 3


def _preview(text: Any, limit: int = PREVIEW_CHARS) -> str:
    """Collapse whitespace and cut to ``limit`` characters."""
    flat = " ".join(str(text or "").split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."


def _meta(item: dict[str, Any], key: str, default: str) -> str:
    metadata = item.get("metadata") or {}
    return str(metadata.get(key) or default)


def _section(title: str, lines: list[str]) -> str:
    return f"## {title}\n" + "\n".join(lines)


def format_context_for_ai(bundle: ContextBundle) -> str:
    """
    Render the bundle as labeled markdown sections plus a footer.

    Args:
        bundle: Result of gather_relevant_context()

    Returns:
        Prompt-ready text; empty sources are omitted
    """
    sections: list[str] = []

    project = bundle.project_context
    if project:
        lines = [str(project.get("name") or "Untitled project")]
        if project.get("description"):
            lines.append(_preview(project["description"], 300))
        sections.append(_section("Current Project", lines))

    if bundle.relevant_knowledge:
        sections.append(_section("Relevant Knowledge", [
            f"- {item.get('title') or 'Untitled'}: {_preview(item.get('content'))}"
            for item in bundle.relevant_knowledge
        ]))

    if bundle.relevant_memories:
        sections.append(_section("Related Memories", [
            f"- {_preview(item.get('content'))}"
            for item in bundle.relevant_memories
        ]))

    if bundle.vector_matches:
        sections.append(_section("Semantic Matches", [
            f"- {chunk.metadata.title}: {_preview(chunk.content)}"
            for chunk in bundle.vector_matches
        ]))

    if bundle.relevant_files:
        sections.append(_section("Relevant Files", [
            f"- {item.get('title') or 'Untitled'} ({_meta(item, 'mimeType', 'unknown')})"
            for item in bundle.relevant_files
        ]))

    if bundle.relevant_emails:
        sections.append(_section("Relevant Emails", [
            f"- {item.get('title') or '(no subject)'}: {_preview(item.get('content'))}"
            for item in bundle.relevant_emails
        ]))

    if bundle.relevant_calendar_events:
        sections.append(_section("Upcoming/Recent Events", [
            f"- {item.get('title') or 'Untitled event'} ({_meta(item, 'start_time', 'unknown time')})"
            for item in bundle.relevant_calendar_events
        ]))

    if bundle.recent_activity:
        sections.append(_section("Recent Activity", [
            f"- {item.get('role') or 'user'}: {_preview(item.get('content'), ACTIVITY_PREVIEW_CHARS)}"
            for item in bundle.recent_activity[:MAX_ACTIVITY_ITEMS]
        ]))

    # Half-up rounding, so 12.5 -> 13 regardless of float banker's rounding
    confidence = math.floor(bundle.confidence + 0.5)
    sources = ", ".join(bundle.sources) if bundle.sources else "none"
    sections.append(f"Context Confidence: {confidence}%\nSources: {sources}")

    return "\n\n".join(sections) + "\n"
