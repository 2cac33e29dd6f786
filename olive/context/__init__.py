"""Context management for the Olive routing core.

This module provides:
- Context window assembly with priority-based compaction
- LLM intent classification with structured output
- Keyword fallback classification
- Conjunctive task reference matching
"""

from olive.context.models import (
    ActivatedSkill,
    ActiveTask,
    ClassificationInput,
    ClassificationResult,
    ClassifiedIntent,
    ContextSection,
    ContextWindow,
    ConversationTurn,
    Intent,
    IntentParameters,
    MemoryContext,
    OptimizedContext,
    PatternObservation,
    ResponseTier,
    RouteDecision,
    UserMemory,
)

__all__ = [
    # Models
    "ActivatedSkill",
    "ActiveTask",
    "ClassificationInput",
    "ClassificationResult",
    "ClassifiedIntent",
    "ContextSection",
    "ContextWindow",
    "ConversationTurn",
    "Intent",
    "IntentParameters",
    "MemoryContext",
    "OptimizedContext",
    "PatternObservation",
    "ResponseTier",
    "RouteDecision",
    "UserMemory",
]
