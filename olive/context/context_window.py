"""Context window management for reply generation.

Assembles weighted prompt sections (system prompt, profile, activity logs,
observed patterns, conversation), estimates their token cost with a cheap
character heuristic, and compacts low-priority sections when the window
approaches its ceiling.

Compaction strategy:
1. Walk sections from lowest to highest priority
2. Compress compressible sections down to their floor
3. Drop sections below the protected priority when compression does not help
4. Stop touching sections once usage is at or below the target fraction
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from olive.context.models import (
    CompactionResult,
    ContextSection,
    ContextWindow,
    ConversationTurn,
    MemoryContext,
    OptimizedContext,
    SectionStat,
    WindowStats,
)
from olive.context.prompt_blocks import OLIVE_SYSTEM_PROMPT
from olive.core.config import Settings
from olive.core.logging import get_logger

logger = get_logger(__name__)

# Token estimation defaults
CHARS_PER_TOKEN = 4
MAX_CONTEXT_TOKENS = 8000
FLUSH_THRESHOLD = 0.75
COMPACT_THRESHOLD = 0.85
COMPACTION_TARGET = 0.70

# Sections at or above this priority are never dropped
PROTECTED_PRIORITY = 6

RECENT_TURNS = 5
PATTERN_MIN_CONFIDENCE = 0.5
PATTERN_COMPRESSED_MIN_CONFIDENCE = 0.6
PATTERN_COMPRESSED_MAX_ENTRIES = 3
YESTERDAY_COMPRESSED_LINES = 3
ELLIPSIS = "..."


@dataclass(frozen=True)
class SectionSpec:
    """Fixed weighting for a named context section."""

    priority: int
    compressible: bool
    min_length: int | None = None  # floor in tokens


SECTION_SPECS: dict[str, SectionSpec] = {
    "system_prompt": SectionSpec(priority=10, compressible=False),
    "recent_conversation": SectionSpec(priority=9, compressible=False),
    "profile": SectionSpec(priority=8, compressible=True, min_length=200),
    "today_log": SectionSpec(priority=7, compressible=True, min_length=100),
    "patterns": SectionSpec(priority=6, compressible=True, min_length=50),
    "additional": SectionSpec(priority=6, compressible=True, min_length=50),
    "yesterday_log": SectionSpec(priority=5, compressible=True, min_length=50),
    "older_conversation": SectionSpec(priority=4, compressible=True, min_length=100),
}

# Reading order of the final prompt (unknown names sort last)
SECTION_ORDER: dict[str, int] = {
    "system_prompt": 1,
    "profile": 2,
    "patterns": 3,
    "yesterday_log": 4,
    "today_log": 5,
    "older_conversation": 6,
    "recent_conversation": 7,
    "additional": 8,
}

_CONFIDENCE_RE = re.compile(r"confidence: ([01](?:\.\d+)?)")


class ContextWindowConfig(BaseModel):
    """Budget knobs for one context window. Tests pass a tiny max_tokens to force compaction."""

    chars_per_token: int = Field(default=CHARS_PER_TOKEN, gt=0)
    max_tokens: int = Field(default=MAX_CONTEXT_TOKENS, gt=0)
    flush_threshold: float = Field(default=FLUSH_THRESHOLD, gt=0.0)
    compact_threshold: float = Field(default=COMPACT_THRESHOLD, gt=0.0)
    compaction_target: float = Field(default=COMPACTION_TARGET, gt=0.0)
    protected_priority: int = Field(default=PROTECTED_PRIORITY, ge=1, le=11)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContextWindowConfig":
        """Build a config from application settings."""
        return cls(
            max_tokens=settings.CONTEXT_MAX_TOKENS,
            flush_threshold=settings.CONTEXT_FLUSH_THRESHOLD,
            compact_threshold=settings.CONTEXT_COMPACT_THRESHOLD,
            compaction_target=settings.CONTEXT_COMPACTION_TARGET,
        )


DEFAULT_CONFIG = ContextWindowConfig()


# =============================================================================
# Token estimation
# =============================================================================


def estimate_tokens(text: str | None, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Approximate token count as ceil(chars / chars_per_token)."""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


# =============================================================================
# Window assembly
# =============================================================================


def _make_section(name: str, content: str, item_count: int | None = None) -> ContextSection:
    spec = SECTION_SPECS[name]
    return ContextSection(
        name=name,
        content=content,
        priority=spec.priority,
        compressible=spec.compressible,
        min_length=spec.min_length,
        item_count=item_count,
    )


def _render_turn(turn: str | ConversationTurn | dict[str, Any]) -> str:
    if isinstance(turn, str):
        return turn
    if isinstance(turn, dict):
        turn = ConversationTurn.model_validate(turn)
    return f"{turn.role}: {turn.content}"


def _format_confidence(confidence: float) -> str:
    return f"{confidence:g}"


def _render_patterns(memory_context: MemoryContext) -> str:
    lines = []
    for pattern in memory_context.patterns:
        if pattern.confidence <= PATTERN_MIN_CONFIDENCE:
            continue
        data = json.dumps(pattern.data, separators=(",", ":"), default=str)
        lines.append(
            f"- {pattern.type}: {data} (confidence: {_format_confidence(pattern.confidence)})"
        )
    return "\n".join(lines)


def create_context_window(
    memory_context: MemoryContext | None = None,
    conversation_history: list[str | ConversationTurn | dict[str, Any]] | None = None,
    additional_context: str | None = None,
    config: ContextWindowConfig | None = None,
) -> ContextWindow:
    """
    Build a context window from profile/activity data and conversation history.

    Sections whose source data is absent or empty are omitted.

    Args:
        memory_context: Profile, daily logs and observed patterns
        conversation_history: Prior turns, most recent last
        additional_context: Free-text context from the caller
        config: Budget configuration

    Returns:
        ContextWindow with total_tokens equal to the sum of section estimates
    """
    config = config or DEFAULT_CONFIG
    history = [_render_turn(t) for t in (conversation_history or [])]
    sections = [_make_section("system_prompt", OLIVE_SYSTEM_PROMPT)]

    if memory_context is not None:
        if memory_context.profile:
            sections.append(
                _make_section("profile", f"## User Profile\n{memory_context.profile}")
            )
        if memory_context.today_log:
            sections.append(
                _make_section("today_log", f"## Today's Activity\n{memory_context.today_log}")
            )
        if memory_context.yesterday_log:
            sections.append(
                _make_section(
                    "yesterday_log", f"## Yesterday's Activity\n{memory_context.yesterday_log}"
                )
            )
        pattern_content = _render_patterns(memory_context)
        if pattern_content:
            sections.append(
                _make_section("patterns", f"## Observed Patterns\n{pattern_content}")
            )

    if history:
        recent = history[-RECENT_TURNS:]
        older = history[:-RECENT_TURNS]
        sections.append(
            _make_section(
                "recent_conversation",
                "## Recent Conversation\n" + "\n".join(recent),
                item_count=len(recent),
            )
        )
        if older:
            sections.append(
                _make_section(
                    "older_conversation",
                    "## Earlier Context\n" + "\n".join(older),
                    item_count=len(older),
                )
            )

    if additional_context:
        sections.append(_make_section("additional", additional_context))

    return ContextWindow(sections=sections, max_tokens=config.max_tokens).recompute_total(
        config.chars_per_token
    )


# =============================================================================
# Thresholds
# =============================================================================


def _usage(window: ContextWindow) -> float:
    return window.total_tokens / window.max_tokens


def needs_compaction(window: ContextWindow, config: ContextWindowConfig | None = None) -> bool:
    """Whether usage has reached the compaction threshold."""
    config = config or DEFAULT_CONFIG
    return _usage(window) >= config.compact_threshold


def should_flush_memory(window: ContextWindow, config: ContextWindowConfig | None = None) -> bool:
    """Whether usage has reached the memory-flush threshold."""
    config = config or DEFAULT_CONFIG
    return _usage(window) >= config.flush_threshold


# =============================================================================
# Compaction
# =============================================================================


def _compress_patterns(content: str) -> str:
    lines = content.split("\n")
    header = lines[0]
    kept = []
    for line in lines[1:]:
        match = _CONFIDENCE_RE.search(line)
        if match and float(match.group(1)) > PATTERN_COMPRESSED_MIN_CONFIDENCE:
            kept.append(line)
    return "\n".join([header, *kept[:PATTERN_COMPRESSED_MAX_ENTRIES]])


def compress_section(
    section: ContextSection, config: ContextWindowConfig | None = None
) -> ContextSection:
    """
    Lossy, section-aware compression toward the section's floor.

    Returns the section unchanged when it is not compressible, has no floor,
    or already fits within floor * chars_per_token characters.
    """
    config = config or DEFAULT_CONFIG
    if not section.compressible or not section.min_length:
        return section

    content = section.content
    target_length = section.min_length * config.chars_per_token
    if len(content) <= target_length:
        return section

    if section.name == "yesterday_log":
        head = "\n".join(content.split("\n")[:YESTERDAY_COMPRESSED_LINES])
        compressed = head[:target_length] + "\n" + ELLIPSIS
    elif section.name == "older_conversation":
        count = section.item_count
        if count is None:
            # Hand-built section: one non-empty line per message after the header
            count = len([line for line in content.split("\n")[1:] if line.strip()])
        compressed = f"[{count} earlier messages summarized]"
    elif section.name == "patterns":
        compressed = _compress_patterns(content)
    else:
        compressed = content[:target_length] + ELLIPSIS

    return section.model_copy(update={"content": compressed})


def compact_context(
    window: ContextWindow, config: ContextWindowConfig | None = None
) -> tuple[ContextWindow, CompactionResult]:
    """
    Compress or drop low-priority sections until usage reaches the target.

    Sections at or above the protected priority are never dropped, so the
    result can stay above target when protected content alone exceeds it.

    Returns:
        (new window, CompactionResult). The input window is not mutated.
    """
    config = config or DEFAULT_CONFIG
    result = CompactionResult()

    if not needs_compaction(window, config):
        return window, result

    current_tokens = window.total_tokens
    target_tokens = window.max_tokens * config.compaction_target
    kept: list[ContextSection] = []

    for section in sorted(window.sections, key=lambda s: s.priority):
        if current_tokens <= target_tokens:
            kept.append(section)
            continue

        section_tokens = estimate_tokens(section.content, config.chars_per_token)

        if section.compressible and section.min_length:
            compressed = compress_section(section, config)
            saved = section_tokens - estimate_tokens(compressed.content, config.chars_per_token)
            if saved > 0:
                kept.append(compressed)
                current_tokens -= saved
                result.compressed_sections.append(section.name)
                result.tokens_saved += saved
                result.compacted = True
                continue

        if section.priority < config.protected_priority:
            result.removed_sections.append(section.name)
            result.tokens_saved += section_tokens
            current_tokens -= section_tokens
            result.compacted = True
        else:
            kept.append(section)

    kept.sort(key=lambda s: s.priority, reverse=True)

    compacted = ContextWindow(sections=kept, max_tokens=window.max_tokens).recompute_total(
        config.chars_per_token
    )

    if compacted.total_tokens > target_tokens:
        logger.warning(
            f"Context still above target after compaction: "
            f"{compacted.total_tokens}/{window.max_tokens} tokens "
            f"(target {int(target_tokens)})"
        )

    return compacted, result


# =============================================================================
# Rendering
# =============================================================================


def build_prompt_from_window(window: ContextWindow, user_message: str) -> str:
    """Render sections in logical order and append the user message."""
    ordered = sorted(window.sections, key=lambda s: SECTION_ORDER.get(s.name, 99))
    parts = [s.content for s in ordered]
    parts.append(f"\n## User Message\n{user_message}")
    return "\n\n".join(parts)


def get_window_stats(
    window: ContextWindow, config: ContextWindowConfig | None = None
) -> WindowStats:
    """Usage and per-section token breakdown."""
    config = config or DEFAULT_CONFIG

    breakdown = []
    for section in window.sections:
        tokens = estimate_tokens(section.content, config.chars_per_token)
        percent = (tokens / window.total_tokens * 100) if window.total_tokens else 0.0
        breakdown.append(SectionStat(name=section.name, tokens=tokens, percent=percent))

    return WindowStats(
        total_tokens=window.total_tokens,
        max_tokens=window.max_tokens,
        usage_percent=_usage(window) * 100,
        needs_compaction=needs_compaction(window, config),
        should_flush=should_flush_memory(window, config),
        section_breakdown=breakdown,
    )


def format_window_report(stats: WindowStats) -> str:
    """Format a human-readable usage report."""
    lines = ["Context Window Report", "=" * 40]

    for stat in stats.section_breakdown:
        lines.append(f"  {stat.name}: {stat.tokens:,} ({stat.percent:.1f}%)")

    lines.append("-" * 40)
    lines.append(f"  Total: {stats.total_tokens:,} / {stats.max_tokens:,}")
    lines.append(f"  Usage: {stats.usage_percent:.1f}%")
    lines.append(f"  Needs Compaction: {stats.needs_compaction}")
    lines.append(f"  Should Flush: {stats.should_flush}")

    return "\n".join(lines)


def create_optimized_context(
    memory_context: MemoryContext | None,
    conversation_history: list[str | ConversationTurn | dict[str, Any]] | None,
    user_message: str,
    additional_context: str | None = None,
    config: ContextWindowConfig | None = None,
) -> OptimizedContext:
    """
    Build, compact if needed, and render the prompt for the reply call.

    Args:
        memory_context: Profile, daily logs and observed patterns
        conversation_history: Prior turns, most recent last
        user_message: The current user message
        additional_context: Free-text context from the caller
        config: Budget configuration

    Returns:
        OptimizedContext with prompt, stats and compaction flags
    """
    config = config or DEFAULT_CONFIG
    window = create_context_window(
        memory_context, conversation_history, additional_context, config
    )

    compaction: CompactionResult | None = None
    if needs_compaction(window, config):
        window, compaction = compact_context(window, config)
        if compaction.compacted:
            logger.info(
                f"Compacted context: removed={compaction.removed_sections} "
                f"compressed={compaction.compressed_sections} "
                f"tokens_saved={compaction.tokens_saved}"
            )

    prompt = build_prompt_from_window(window, user_message)
    stats = get_window_stats(window, config)

    return OptimizedContext(
        prompt=prompt,
        stats=stats,
        was_compacted=bool(compaction and compaction.compacted),
        should_flush=stats.should_flush,
        compaction=compaction,
    )
