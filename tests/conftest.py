"""Pytest configuration and fixtures."""

import os

import pytest

from olive.context.models import (
    ActivatedSkill,
    ActiveTask,
    ClassificationInput,
    ConversationTurn,
    UserMemory,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["OLIVE_ENV"] = "test"
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ.pop("ANTHROPIC_API_KEY", None)

    from olive.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def active_tasks() -> list[ActiveTask]:
    return [
        ActiveTask(id="t-dental", summary="Dental Milka", due_date="2026-10-21", priority="high"),
        ActiveTask(id="t-howl", summary="Research The Happy Howl for Milka"),
        ActiveTask(id="t-milk", summary="Buy milk"),
        ActiveTask(id="t-passport", summary="Renew passport", priority="low"),
    ]


@pytest.fixture
def classification_input(active_tasks) -> ClassificationInput:
    return ClassificationInput(
        message="Dental Milka complete",
        conversation_history=[
            ConversationTurn(role="user", content="add renew passport"),
            ConversationTurn(role="assistant", content="Saved: Renew passport"),
        ],
        active_tasks=active_tasks,
        user_memories=[UserMemory(title="Milka", content="Milka is our dog", category="pets")],
        activated_skills=[ActivatedSkill(skill_id="skill-groceries", name="Grocery helper")],
    )
