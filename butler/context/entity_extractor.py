"""Entity and keyword extraction used to seed per-source queries."""

import re

# Detectors run independently; matches are concatenated in this order
DATE_PATTERNS = [
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(
        r"\b(?:today|tomorrow|yesterday|monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:january|february|march|april|may|june|july|august|september|october|november|december)\b",
        re.IGNORECASE,
    ),
]

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

FILE_PATTERN = re.compile(
    r"\b\w+\.(?:pdf|doc|docx|xls|xlsx|ppt|pptx|txt|jpg|png|gif|mp4|avi|zip|csv)\b",
    re.IGNORECASE,
)

DOMAIN_TERM_PATTERN = re.compile(
    r"\b(?:project|task|meeting|deadline|client|budget|proposal|contract|invoice)\b",
    re.IGNORECASE,
)

ENTITY_DETECTORS: list[re.Pattern[str]] = [
    *DATE_PATTERNS,
    EMAIL_PATTERN,
    FILE_PATTERN,
    DOMAIN_TERM_PATTERN,
]

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "can", "cant", "cannot", "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
})

MAX_KEYWORDS = 10


def extract_entities(message: str) -> list[str]:
    """
    Pull dates, emails, filenames and domain terms out of a message.

    Matches keep their original casing. A token found by two detectors
    appears twice: the result is a hint list, not a set of unique keys.
    """
    if not message:
        return []

    entities: list[str] = []
    for detector in ENTITY_DETECTORS:
        entities.extend(m for m in detector.findall(message) if m)
    return entities


def extract_keywords(message: str) -> list[str]:
    """
    Extract up to 10 search keywords, in message order.

    Lowercases, turns punctuation into spaces, drops stop words and
    anything of 2 characters or fewer.
    """
    if not message:
        return []

    cleaned = re.sub(r"[^\w\s]", " ", message.lower())
    words = [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]
    return words[:MAX_KEYWORDS]
