"""Message analysis for context retrieval.

This module provides:
- Coarse intent classification
- The gather/skip decision table
- Entity and keyword extraction
- Context data models (vector chunks, bundles, scope filters)
"""

from butler.context.entity_extractor import extract_entities, extract_keywords
from butler.context.intent_classifier import classify_intent, should_gather_context
from butler.context.models import (
    ChunkMetadata,
    ChunkType,
    ContextBundle,
    Intent,
    ScopeFilters,
    VectorChunk,
)

__all__ = [
    # Models
    "ChunkMetadata",
    "ChunkType",
    "ContextBundle",
    "Intent",
    "ScopeFilters",
    "VectorChunk",
    # Analysis
    "classify_intent",
    "extract_entities",
    "extract_keywords",
    "should_gather_context",
]
