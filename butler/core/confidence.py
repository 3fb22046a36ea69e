"""Coverage-based confidence and source attribution for a context bundle.

Confidence is a saturating count of retrieved items, not a calibrated
probability.
"""

from typing import Sequence

DEFAULT_MAX_EXPECTED_SOURCES = 16

# Bundle order for the sources list
SOURCE_LABELS = (
    "knowledge_base",
    "memory_chunks",
    "google_drive",
    "gmail",
    "calendar",
    "vector_store",
)


def calculate_confidence(
    knowledge: int,
    memory: int,
    files: int,
    emails: int,
    calendar: int,
    max_expected_sources: int = DEFAULT_MAX_EXPECTED_SOURCES,
) -> float:
    """
    Score how much context was found, 0-100.

    Returns:
        min(1, total / max_expected_sources) * 100
    """
    total = knowledge + memory + files + emails + calendar
    if total <= 0 or max_expected_sources <= 0:
        return 0.0
    return min(total / max_expected_sources, 1.0) * 100


def identify_sources(
    knowledge: Sequence,
    memories: Sequence,
    files: Sequence,
    emails: Sequence,
    calendar: Sequence,
    vector_matches: Sequence = (),
) -> list[str]:
    """Labels of the sources that returned at least one item, in fixed order."""
    found = (knowledge, memories, files, emails, calendar, vector_matches)
    return [label for label, items in zip(SOURCE_LABELS, found) if len(items) > 0]
