"""Heuristic intent classification and the gather/skip decision.

Both are table-driven so each rule can be tested on its own and extended
without touching control flow. Skipping context a user needed is worse than
fetching context nobody reads, so only clearly generic questions take the
fast path.
"""

import re
from dataclasses import dataclass
from typing import Callable, Sequence

from butler.context.models import Intent
from butler.core.logging import get_logger

logger = get_logger(__name__)


# Checked in order; the first category with a matching keyword wins
INTENT_KEYWORDS: list[tuple[Intent, tuple[str, ...]]] = [
    (Intent.RECALL, ("remind", "remember", "recall")),
    (Intent.SCHEDULING, ("schedule", "meeting", "calendar")),
    (Intent.COMMUNICATION, ("email", "send", "contact")),
    (Intent.FILES, ("file", "document", "drive")),
    (Intent.PROJECT_MANAGEMENT, ("project", "task", "work")),
    (Intent.SEARCH, ("search", "find", "look")),
]

# Intents that always need user data
CONTEXT_INTENTS = frozenset({
    Intent.RECALL,
    Intent.SCHEDULING,
    Intent.COMMUNICATION,
    Intent.FILES,
    Intent.PROJECT_MANAGEMENT,
    Intent.SEARCH,
})

# First-person markers: the user is asking about their own data
PERSONAL_MARKERS = (
    "my", "our", "we", "i", "me",
    "show me", "find my", "where is", "when did",
    "did i", "have i", "what was",
)

# Temporal markers match at word starts ("previously", "todays")
TEMPORAL_MARKERS = (
    "last", "recent", "yesterday", "today", "tomorrow",
    "previous", "earlier", "ago",
)

# Generic questions answerable without user context
GENERAL_KNOWLEDGE_PATTERNS = (
    "what is", "what are", "who is", "who are", "where is",
    "how does", "how do", "how can", "how to",
    "why does", "why do", "why is",
    "tell me about", "explain", "describe",
    "define", "meaning of",
)


def _phrase_regex(phrases: Sequence[str], prefix_only: bool = False) -> re.Pattern[str]:
    alternation = "|".join(re.escape(p) for p in phrases)
    if prefix_only:
        return re.compile(rf"\b(?:{alternation})", re.IGNORECASE)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


_INTENT_PATTERNS = [
    (intent, _phrase_regex(keywords, prefix_only=True)) for intent, keywords in INTENT_KEYWORDS
]
_PERSONAL_RE = _phrase_regex(PERSONAL_MARKERS)
_TEMPORAL_RE = _phrase_regex(TEMPORAL_MARKERS, prefix_only=True)
_GENERAL_RE = _phrase_regex(GENERAL_KNOWLEDGE_PATTERNS)


def classify_intent(message: str) -> Intent:
    """
    Classify a message by keyword lookup.

    Keywords match at word starts, so "reminder" counts as recall but
    "network" does not count as project work.
    """
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(message or ""):
            return intent
    return Intent.GENERAL


@dataclass(frozen=True)
class GatherInput:
    """Everything the gather rules look at."""

    message: str
    intent: Intent
    entities: Sequence[str]
    project_id: str | None = None


@dataclass(frozen=True)
class GatherRule:
    """One row of the gather decision table."""

    name: str
    matches: Callable[[GatherInput], bool]
    verdict: bool


GATHER_RULES: list[GatherRule] = [
    GatherRule("explicit_project_scope", lambda g: bool(g.project_id), True),
    GatherRule("context_intent", lambda g: g.intent in CONTEXT_INTENTS, True),
    GatherRule("entities_detected", lambda g: len(g.entities) > 0, True),
    GatherRule(
        "personal_marker",
        lambda g: bool(_PERSONAL_RE.search(g.message) or _TEMPORAL_RE.search(g.message)),
        True,
    ),
    GatherRule("general_knowledge", lambda g: bool(_GENERAL_RE.search(g.message)), False),
]

DEFAULT_RULE = GatherRule("default", lambda g: True, True)


def decide_gather(
    message: str,
    intent: Intent,
    entities: Sequence[str],
    project_id: str | None = None,
) -> GatherRule:
    """Return the first rule that matches (DEFAULT_RULE if none does)."""
    given = GatherInput(
        message=message or "",
        intent=intent,
        entities=entities,
        project_id=project_id,
    )
    for rule in GATHER_RULES:
        if rule.matches(given):
            return rule
    return DEFAULT_RULE


def should_gather_context(
    message: str,
    intent: Intent,
    entities: Sequence[str],
    project_id: str | None = None,
) -> bool:
    """
    Decide whether a message needs user-specific context.

    Args:
        message: Raw user utterance
        intent: Result of classify_intent()
        entities: Result of extract_entities()
        project_id: Explicit project scope from the caller, if any

    Returns:
        False only for generic knowledge questions; True otherwise
    """
    rule = decide_gather(message, intent, entities, project_id)
    if not rule.verdict:
        logger.debug(f"Fast-path: skipping context gathering (rule={rule.name})")
    return rule.verdict
