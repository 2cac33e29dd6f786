"""User-context fetchers feeding the classifier and the context window.

All fetchers are best effort: a database error is logged and an empty value
is returned, so a missing table or a Supabase outage degrades context instead
of failing the turn.
"""

import re
from datetime import date, datetime, timedelta, timezone  # noqa: UP035
from typing import Any
from uuid import UUID

from olive.context.models import (
    ActivatedSkill,
    ActiveTask,
    ClassificationInput,
    ConversationTurn,
    MemoryContext,
    PatternObservation,
    UserMemory,
)
from olive.core.logging import get_logger
from olive.db.supabase_client import get_supabase

logger = get_logger(__name__)

ACTIVE_TASKS_LIMIT = 50
MEMORIES_LIMIT = 15
SKILLS_LIMIT = 10
PATTERNS_LIMIT = 5
PATTERN_MIN_CONFIDENCE = 0.6

AGENT_INSIGHTS_WINDOW_HOURS = 48
AGENT_RUNS_LIMIT = 10
AGENT_MESSAGE_MAX_CHARS = 300

# Agent results that carry no information for the user
TRIVIAL_AGENT_PREFIXES: tuple[str, ...] = (
    "no stale tasks",
    "no upcoming bills",
    "oura not connected",
    "no oura data",
    "no tasks scheduled",
    "gmail not connected",
    "email triage set to manual",
    "too soon",
    "sleep looks good",
    "no upcoming dates",
    "no couple linked",
    "couple members not found",
    "no bill-related",
    "not enough sleep",
    "could not fetch dates",
    "no messages to send",
    "no dates in reminder",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)  # noqa: UP017


# =============================================================================
# Tasks, memories, skills, patterns
# =============================================================================


def fetch_active_tasks(user_id: UUID | str, limit: int = ACTIVE_TASKS_LIMIT) -> list[ActiveTask]:
    """Incomplete tasks authored by the user, newest first."""
    try:
        supabase = get_supabase()
        response = (
            supabase.table("clerk_notes")
            .select("id, summary, due_date, priority")
            .eq("author_id", str(user_id))
            .eq("completed", False)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [
            ActiveTask(
                id=str(row["id"]),
                summary=row.get("summary") or "",
                due_date=row.get("due_date"),
                priority=row.get("priority") or "medium",
            )
            for row in response.data or []
        ]
    except Exception as e:
        logger.error(f"Failed to fetch active tasks for user {user_id}: {e}")
        return []


def fetch_user_memories(user_id: UUID | str, limit: int = MEMORIES_LIMIT) -> list[UserMemory]:
    """Active memories, most important first."""
    try:
        supabase = get_supabase()
        response = (
            supabase.table("user_memories")
            .select("title, content, category, importance")
            .eq("user_id", str(user_id))
            .eq("is_active", True)
            .order("importance", desc=True)
            .limit(limit)
            .execute()
        )
        return [
            UserMemory(
                title=row.get("title") or "",
                content=row.get("content") or "",
                category=row.get("category") or "general",
            )
            for row in response.data or []
        ]
    except Exception as e:
        logger.error(f"Failed to fetch memories for user {user_id}: {e}")
        return []


def fetch_user_skills(user_id: UUID | str, limit: int = SKILLS_LIMIT) -> list[ActivatedSkill]:
    """Enabled skills joined with their catalogue entry."""
    try:
        supabase = get_supabase()
        response = (
            supabase.table("olive_user_skills")
            .select("skill_id, olive_skills(skill_id, name, content, category)")
            .eq("user_id", str(user_id))
            .eq("enabled", True)
            .limit(limit)
            .execute()
        )
        skills = []
        for row in response.data or []:
            skill = row.get("olive_skills")
            if not skill:
                continue
            skills.append(ActivatedSkill(skill_id=skill["skill_id"], name=skill.get("name") or ""))
        return skills
    except Exception as e:
        logger.error(f"Failed to fetch skills for user {user_id}: {e}")
        return []


def fetch_patterns(user_id: UUID | str, limit: int = PATTERNS_LIMIT) -> list[PatternObservation]:
    """Active behavioural patterns with confidence >= 0.6."""
    try:
        supabase = get_supabase()
        response = (
            supabase.table("olive_patterns")
            .select("pattern_type, pattern_data, confidence")
            .eq("user_id", str(user_id))
            .eq("is_active", True)
            .gte("confidence", PATTERN_MIN_CONFIDENCE)
            .limit(limit)
            .execute()
        )
        return [
            PatternObservation(
                type=row.get("pattern_type") or "unknown",
                data=row.get("pattern_data") or {},
                confidence=row.get("confidence") or 0.0,
            )
            for row in response.data or []
        ]
    except Exception as e:
        logger.error(f"Failed to fetch patterns for user {user_id}: {e}")
        return []


# =============================================================================
# Memory files
# =============================================================================


def fetch_memory_context(user_id: UUID | str, today: date | None = None) -> MemoryContext:
    """
    Profile, today's and yesterday's daily logs, plus patterns.

    Profile is the file_type='profile' row with no date; daily logs are
    file_type='daily' rows keyed by ISO date.
    """
    today = today or _utc_now().date()
    today_key = today.isoformat()
    yesterday_key = (today - timedelta(days=1)).isoformat()

    profile = today_log = yesterday_log = None
    try:
        supabase = get_supabase()
        response = (
            supabase.table("olive_memory_files")
            .select("file_type, file_date, content")
            .eq("user_id", str(user_id))
            .in_("file_type", ["profile", "daily"])
            .execute()
        )
        for row in response.data or []:
            content = row.get("content") or None
            file_type = row.get("file_type")
            file_date = row.get("file_date")
            if file_type == "profile" and file_date is None:
                profile = content
            elif file_type == "daily" and file_date == today_key:
                today_log = content
            elif file_type == "daily" and file_date == yesterday_key:
                yesterday_log = content
    except Exception as e:
        logger.error(f"Failed to fetch memory files for user {user_id}: {e}")

    return MemoryContext(
        profile=profile,
        today_log=today_log,
        yesterday_log=yesterday_log,
        patterns=fetch_patterns(user_id),
    )


# =============================================================================
# Agent insights
# =============================================================================


def _agent_display_name(agent_id: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), agent_id.replace("-", " "))


def format_agent_insights(runs: list[dict[str, Any]]) -> str:
    """One line per agent (first run wins), trivial results dropped."""
    seen: set[str] = set()
    insights: list[str] = []

    for run in runs:
        agent_id = run.get("agent_id") or ""
        if agent_id in seen:
            continue
        seen.add(agent_id)

        message = ((run.get("result") or {}).get("message") or "").strip()
        if not message:
            continue
        if message.lower().startswith(TRIVIAL_AGENT_PREFIXES):
            continue

        insights.append(
            f"- {_agent_display_name(agent_id)}: {message[:AGENT_MESSAGE_MAX_CHARS]}"
        )

    if not insights:
        return ""
    return "## Recent Agent Insights (Background AI analysis):\n" + "\n".join(insights) + "\n"


def fetch_agent_insights_context(user_id: UUID | str, now: datetime | None = None) -> str:
    """Recent background agent results formatted as a context block ("" when none)."""
    now = now or _utc_now()
    since = (now - timedelta(hours=AGENT_INSIGHTS_WINDOW_HOURS)).isoformat()

    try:
        supabase = get_supabase()
        response = (
            supabase.table("olive_agent_runs")
            .select("agent_id, result, completed_at")
            .eq("user_id", str(user_id))
            .eq("status", "completed")
            .gte("completed_at", since)
            .order("completed_at", desc=True)
            .limit(AGENT_RUNS_LIMIT)
            .execute()
        )
        return format_agent_insights(response.data or [])
    except Exception as e:
        logger.error(f"Failed to fetch agent insights for user {user_id}: {e}")
        return ""


# =============================================================================
# Classification input
# =============================================================================


def build_classification_input(
    user_id: UUID | str,
    message: str,
    conversation_history: list[ConversationTurn] | None = None,
    recent_outbound_messages: list[str] | None = None,
    user_language: str = "en",
) -> ClassificationInput:
    """Assemble the classifier input snapshot for one inbound message."""
    return ClassificationInput(
        message=message,
        conversation_history=conversation_history or [],
        recent_outbound_messages=recent_outbound_messages or [],
        active_tasks=fetch_active_tasks(user_id),
        user_memories=fetch_user_memories(user_id),
        activated_skills=fetch_user_skills(user_id),
        user_language=user_language,
    )
