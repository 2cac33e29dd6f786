"""Tests for user-context fetchers with mocked Supabase."""

from datetime import date, datetime, timezone  # noqa: UP035
from unittest.mock import MagicMock

import pytest

from olive.db.user_context import (
    build_classification_input,
    fetch_active_tasks,
    fetch_agent_insights_context,
    fetch_memory_context,
    fetch_patterns,
    fetch_user_memories,
    fetch_user_skills,
    format_agent_insights,
)

QUERY_METHODS = ("select", "eq", "gte", "in_", "order", "limit")


def _mock_supabase(rows_by_table: dict[str, list[dict]]) -> MagicMock:
    """Supabase mock whose query builders return fixed rows per table."""
    mock_supabase = MagicMock()
    queries: dict[str, MagicMock] = {}

    def _table(name: str) -> MagicMock:
        if name not in queries:
            query = MagicMock()
            for method in QUERY_METHODS:
                getattr(query, method).return_value = query
            query.execute.return_value = MagicMock(data=rows_by_table.get(name, []))
            queries[name] = query
        return queries[name]

    mock_supabase.table.side_effect = _table
    mock_supabase.queries = queries
    return mock_supabase


def _failing_supabase() -> MagicMock:
    mock_supabase = MagicMock()
    mock_supabase.table.side_effect = Exception("relation does not exist")
    return mock_supabase


class TestFetchers:
    def test_active_tasks(self, monkeypatch: pytest.MonkeyPatch):
        mock_supabase = _mock_supabase({
            "clerk_notes": [
                {"id": 11, "summary": "Dental Milka", "due_date": "2026-10-21", "priority": "high"},
                {"id": 12, "summary": "Buy milk", "due_date": None, "priority": None},
            ]
        })
        monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

        tasks = fetch_active_tasks("user-1")

        assert [t.id for t in tasks] == ["11", "12"]
        assert tasks[1].priority == "medium"
        query = mock_supabase.queries["clerk_notes"]
        query.eq.assert_any_call("author_id", "user-1")
        query.eq.assert_any_call("completed", False)
        query.limit.assert_called_once_with(50)

    def test_user_memories(self, monkeypatch: pytest.MonkeyPatch):
        mock_supabase = _mock_supabase({
            "user_memories": [
                {"title": "Milka", "content": "Milka is our dog", "category": None, "importance": 5},
            ]
        })
        monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

        memories = fetch_user_memories("user-1")

        assert memories[0].title == "Milka"
        assert memories[0].category == "general"
        mock_supabase.queries["user_memories"].order.assert_called_once_with("importance", desc=True)

    def test_user_skills_skip_missing_catalogue_entries(self, monkeypatch: pytest.MonkeyPatch):
        mock_supabase = _mock_supabase({
            "olive_user_skills": [
                {"skill_id": "a", "olive_skills": {"skill_id": "a", "name": "Meal planner"}},
                {"skill_id": "b", "olive_skills": None},
            ]
        })
        monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

        skills = fetch_user_skills("user-1")

        assert [(s.skill_id, s.name) for s in skills] == [("a", "Meal planner")]

    def test_patterns(self, monkeypatch: pytest.MonkeyPatch):
        mock_supabase = _mock_supabase({
            "olive_patterns": [
                {"pattern_type": "grocery_day", "pattern_data": {"day": "saturday"}, "confidence": 0.8},
            ]
        })
        monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

        patterns = fetch_patterns("user-1")

        assert patterns[0].type == "grocery_day"
        assert patterns[0].data == {"day": "saturday"}
        mock_supabase.queries["olive_patterns"].gte.assert_called_once_with("confidence", 0.6)

    @pytest.mark.parametrize(
        "fetcher",
        [fetch_active_tasks, fetch_user_memories, fetch_user_skills, fetch_patterns],
    )
    def test_database_errors_return_empty(self, monkeypatch: pytest.MonkeyPatch, fetcher):
        monkeypatch.setattr("olive.db.user_context.get_supabase", _failing_supabase)
        assert fetcher("user-1") == []


class TestFetchMemoryContext:
    def test_profile_and_daily_logs(self, monkeypatch: pytest.MonkeyPatch):
        mock_supabase = _mock_supabase({
            "olive_memory_files": [
                {"file_type": "profile", "file_date": None, "content": "Lives in Madrid"},
                {"file_type": "daily", "file_date": "2026-10-19", "content": "Bought flowers"},
                {"file_type": "daily", "file_date": "2026-10-18", "content": "Vet visit"},
                {"file_type": "daily", "file_date": "2026-10-10", "content": "Old news"},
            ],
            "olive_patterns": [
                {"pattern_type": "gym", "pattern_data": {}, "confidence": 0.7},
            ],
        })
        monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

        context = fetch_memory_context("user-1", today=date(2026, 10, 19))

        assert context.profile == "Lives in Madrid"
        assert context.today_log == "Bought flowers"
        assert context.yesterday_log == "Vet visit"
        assert [p.type for p in context.patterns] == ["gym"]

    def test_database_error_returns_empty_context(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("olive.db.user_context.get_supabase", _failing_supabase)

        context = fetch_memory_context("user-1", today=date(2026, 10, 19))

        assert context.profile is None
        assert context.today_log is None
        assert context.patterns == []


class TestAgentInsights:
    def test_format_dedupes_and_filters_trivial(self):
        runs = [
            {"agent_id": "bill-reminder", "result": {"message": "Electricity bill due Friday"}},
            {"agent_id": "bill-reminder", "result": {"message": "Older duplicate"}},
            {"agent_id": "sleep-coach", "result": {"message": "Sleep looks good this week"}},
            {"agent_id": "stale-tasks", "result": {"message": "  "}},
            {"agent_id": "date-ideas", "result": {"message": "x" * 400}},
        ]

        block = format_agent_insights(runs)

        assert block.startswith("## Recent Agent Insights (Background AI analysis):\n")
        assert "- Bill Reminder: Electricity bill due Friday" in block
        assert "Older duplicate" not in block
        assert "Sleep Coach" not in block
        assert "Stale Tasks" not in block
        assert f"- Date Ideas: {'x' * 300}\n" in block

    def test_format_empty(self):
        assert format_agent_insights([]) == ""

    def test_fetch_uses_48h_window(self, monkeypatch: pytest.MonkeyPatch):
        mock_supabase = _mock_supabase({
            "olive_agent_runs": [
                {"agent_id": "bill-reminder", "result": {"message": "Rent due"}, "completed_at": "x"},
            ]
        })
        monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

        now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)  # noqa: UP017
        block = fetch_agent_insights_context("user-1", now=now)

        assert "- Bill Reminder: Rent due" in block
        query = mock_supabase.queries["olive_agent_runs"]
        query.gte.assert_called_once_with("completed_at", "2026-10-17T12:00:00+00:00")
        query.eq.assert_any_call("status", "completed")

    def test_fetch_error_returns_empty_string(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("olive.db.user_context.get_supabase", _failing_supabase)
        assert fetch_agent_insights_context("user-1") == ""


def test_build_classification_input(monkeypatch: pytest.MonkeyPatch):
    mock_supabase = _mock_supabase({
        "clerk_notes": [{"id": "t1", "summary": "Buy milk"}],
        "user_memories": [{"title": "Diet", "content": "Vegetarian"}],
        "olive_user_skills": [{"olive_skills": {"skill_id": "s1", "name": "Meals"}}],
    })
    monkeypatch.setattr("olive.db.user_context.get_supabase", lambda: mock_supabase)

    ci = build_classification_input("user-1", "buy milk", user_language="it")

    assert ci.message == "buy milk"
    assert [t.summary for t in ci.active_tasks] == ["Buy milk"]
    assert ci.user_memories[0].content == "Vegetarian"
    assert ci.activated_skills[0].skill_id == "s1"
    assert ci.user_language == "it"
    assert ci.conversation_history == []
