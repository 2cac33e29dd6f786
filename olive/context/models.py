"""Pydantic models for context assembly, intent classification and routing."""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Classification input
# =============================================================================


class ConversationTurn(BaseModel):
    """A prior turn in the conversation."""

    role: str = Field(..., description="user or assistant")
    content: str = Field(..., description="Message content")


class ActiveTask(BaseModel):
    """An open task the user may be referring to."""

    id: str = Field(..., description="Opaque task identifier")
    summary: str = Field(..., description="Short task summary")
    due_date: str | None = Field(default=None, description="Due date, if any")
    priority: str = Field(default="medium", description="Priority level")


class UserMemory(BaseModel):
    """A durable fact about the user."""

    title: str
    content: str
    category: str = "general"


class ActivatedSkill(BaseModel):
    """An enabled capability plugin."""

    skill_id: str
    name: str


class ClassificationInput(BaseModel):
    """
    Immutable snapshot handed to the classifier for one inbound message.

    Only the last 6 conversation turns, the first 30 tasks, the first 10
    memories and the first 3 outbound messages are rendered into the prompt.
    """

    model_config = ConfigDict(frozen=True)

    message: str = Field(..., description="Raw user utterance")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list, description="Prior turns, most recent last"
    )
    recent_outbound_messages: list[str] = Field(
        default_factory=list, description="What Olive recently said on this channel"
    )
    active_tasks: list[ActiveTask] = Field(default_factory=list)
    user_memories: list[UserMemory] = Field(default_factory=list)
    activated_skills: list[ActivatedSkill] = Field(default_factory=list)
    user_language: str = Field(default="en", description="ISO-ish language code")


# =============================================================================
# Classification output
# =============================================================================


class Intent(str, Enum):
    """Closed intent vocabulary."""

    SEARCH = "search"
    CREATE = "create"
    COMPLETE = "complete"
    SET_PRIORITY = "set_priority"
    SET_DUE = "set_due"
    DELETE = "delete"
    MOVE = "move"
    ASSIGN = "assign"
    REMIND = "remind"
    EXPENSE = "expense"
    CHAT = "chat"
    CONTEXTUAL_ASK = "contextual_ask"
    MERGE = "merge"
    PARTNER_MESSAGE = "partner_message"


class QueryType(str, Enum):
    URGENT = "urgent"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    RECENT = "recent"
    OVERDUE = "overdue"
    GENERAL = "general"


class ChatType(str, Enum):
    BRIEFING = "briefing"
    WEEKLY_SUMMARY = "weekly_summary"
    DAILY_FOCUS = "daily_focus"
    PRODUCTIVITY_TIPS = "productivity_tips"
    PROGRESS_CHECK = "progress_check"
    MOTIVATION = "motivation"
    PLANNING = "planning"
    GREETING = "greeting"
    GENERAL = "general"


class PartnerAction(str, Enum):
    REMIND = "remind"
    TELL = "tell"
    ASK = "ask"
    NOTIFY = "notify"


class IntentParameters(BaseModel):
    """
    Intent-specific parameters.

    Every field is always present; a field that does not apply to the
    classified intent is None, never omitted.
    """

    model_config = ConfigDict(extra="forbid")

    priority: str | None = None
    due_date_expression: str | None = None
    query_type: QueryType | None = None
    chat_type: ChatType | None = None
    list_name: str | None = None
    amount: float | None = None
    expense_description: str | None = None
    is_urgent: bool | None = None
    partner_message_content: str | None = None
    partner_action: PartnerAction | None = None


class ClassifiedIntent(BaseModel):
    """Structured classification of one user message."""

    intent: Intent = Field(..., description="Exactly one intent from the closed vocabulary")
    target_task_id: str | None = Field(default=None, description="Matched active task id")
    target_task_name: str | None = Field(
        default=None, description="User's raw reference to the task"
    )
    matched_skill_id: str | None = Field(default=None, description="Matched activated skill")
    parameters: IntentParameters = Field(default_factory=IntentParameters)
    confidence: float = Field(..., ge=0.0, le=1.0, description="Classification confidence")
    reasoning: str = Field(default="", description="Short explanation of the decision")

    @property
    def confidence_band(self) -> str:
        """Advisory band: clear, moderate, uncertain or ambiguous."""
        if self.confidence >= 0.9:
            return "clear"
        if self.confidence >= 0.7:
            return "moderate"
        if self.confidence >= 0.5:
            return "uncertain"
        return "ambiguous"


class ClassificationResult(BaseModel):
    """Classifier output. intent is None when the caller must use its fallback."""

    intent: ClassifiedIntent | None = None
    latency_ms: int = 0


# =============================================================================
# Routing
# =============================================================================


class ResponseTier(str, Enum):
    """Response-generation tiers, cheapest to costliest."""

    LITE = "lite"
    STANDARD = "standard"
    PRO = "pro"


class RouteDecision(BaseModel):
    """Tier chosen for the reply plus a machine-readable reason tag."""

    response_tier: ResponseTier
    reason: str = Field(..., min_length=1)


# =============================================================================
# Context window
# =============================================================================


class PatternObservation(BaseModel):
    """An observed behavioural pattern."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class MemoryContext(BaseModel):
    """Profile and activity bundle used to assemble a context window."""

    profile: str | None = None
    today_log: str | None = None
    yesterday_log: str | None = None
    patterns: list[PatternObservation] = Field(default_factory=list)


class ContextSection(BaseModel):
    """A weighted chunk of prompt content."""

    name: str = Field(..., description="Unique within a window")
    content: str
    priority: int = Field(..., ge=1, le=10, description="Higher = retained longer")
    compressible: bool = False
    min_length: int | None = Field(
        default=None, description="Compression floor in tokens"
    )
    item_count: int | None = Field(
        default=None, ge=0, description="Entries rendered into content (conversation turns)"
    )


class ContextWindow(BaseModel):
    """Sections plus a running token total; built fresh per request."""

    sections: list[ContextSection] = Field(default_factory=list)
    total_tokens: int = Field(default=0, ge=0)
    max_tokens: int = Field(default=8000, gt=0)

    def section(self, name: str) -> ContextSection | None:
        """Look up a section by name."""
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def recompute_total(self, chars_per_token: int = 4) -> "ContextWindow":
        """Copy with total_tokens recomputed from section contents."""
        total = sum(math.ceil(len(s.content) / chars_per_token) for s in self.sections)
        return self.model_copy(update={"total_tokens": total})


class CompactionResult(BaseModel):
    """What a compaction pass did."""

    compacted: bool = False
    removed_sections: list[str] = Field(default_factory=list)
    compressed_sections: list[str] = Field(default_factory=list)
    tokens_saved: int = 0


class SectionStat(BaseModel):
    name: str
    tokens: int
    percent: float


class WindowStats(BaseModel):
    """Usage breakdown of a context window."""

    total_tokens: int
    max_tokens: int
    usage_percent: float
    needs_compaction: bool
    should_flush: bool
    section_breakdown: list[SectionStat] = Field(default_factory=list)


class OptimizedContext(BaseModel):
    """Rendered prompt ready for the reply-generation call."""

    prompt: str
    stats: WindowStats
    was_compacted: bool = False
    should_flush: bool = False
    compaction: CompactionResult | None = None
