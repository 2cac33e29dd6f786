"""Tests for keyword fallback intent classification."""

import pytest

from olive.context.intent_fallback import classify_intent_fallback, extract_due_date_expression
from olive.context.models import ChatType, Intent, PartnerAction, QueryType


def _classify(classification_input, message):
    return classify_intent_fallback(classification_input.model_copy(update={"message": message}))


class TestExtractDueDateExpression:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("change it to 7am", "7am"),
            ("remind me at 5 PM", "5 PM"),
            ("postpone to next Friday", "next Friday"),
            ("call mom tomorrow", "tomorrow"),
            ("in 2 hours please", "in 2 hours"),
            ("dentist on March 3rd", "March 3rd"),
            ("buy milk", None),
        ],
    )
    def test_expressions(self, text, expected):
        assert extract_due_date_expression(text) == expected


class TestTaskActions:
    def test_precise_task_match(self, classification_input):
        result = _classify(classification_input, "Dental Milka complete")
        assert result.intent == Intent.COMPLETE
        assert result.target_task_id == "t-dental"
        assert result.confidence == 0.75

    def test_pronoun_resolves_to_task_in_conversation(self, classification_input):
        result = _classify(classification_input, "mark it as done")
        assert result.intent == Intent.COMPLETE
        assert result.target_task_id == "t-passport"
        assert result.target_task_name == "Renew passport"

    def test_time_change_is_set_due(self, classification_input):
        result = _classify(classification_input, "change it to 7am")
        assert result.intent == Intent.SET_DUE
        assert result.target_task_id == "t-passport"
        assert result.parameters.due_date_expression == "7am"

    def test_postpone_without_time_is_set_due(self, classification_input):
        result = _classify(classification_input, "postpone the dentist")
        assert result.intent == Intent.SET_DUE
        assert result.target_task_id is None
        assert result.target_task_name == "dentist"

    def test_unmatched_reference_does_not_borrow_conversation_task(self, classification_input):
        result = _classify(classification_input, "done with groceries")
        assert result.intent == Intent.COMPLETE
        assert result.target_task_id is None
        assert result.target_task_name == "groceries"

    def test_move_to_list(self, classification_input):
        result = _classify(classification_input, "move it to groceries")
        assert result.intent == Intent.MOVE
        assert result.parameters.list_name == "groceries"

    def test_set_priority(self, classification_input):
        result = _classify(classification_input, "make it urgent")
        assert result.intent == Intent.SET_PRIORITY
        assert result.parameters.priority == "high"

    def test_assign(self, classification_input):
        result = _classify(classification_input, "give this to Marcus")
        assert result.intent == Intent.ASSIGN
        assert result.target_task_id == "t-passport"

    def test_delete(self, classification_input):
        result = _classify(classification_input, "delete the Buy milk task")
        assert result.intent == Intent.DELETE
        assert result.target_task_id == "t-milk"

    def test_cancel_something_not_a_task_creates(self, classification_input):
        result = _classify(classification_input, "cancel my subscription")
        assert result.intent == Intent.CREATE

    def test_merge(self, classification_input):
        assert _classify(classification_input, "merge").intent == Intent.MERGE


class TestReminders:
    def test_reminder_with_new_subject(self, classification_input):
        result = _classify(classification_input, "remind me to call the dentist next Monday")
        assert result.intent == Intent.REMIND
        assert result.target_task_id is None
        assert result.target_task_name == "call the dentist"
        assert result.parameters.due_date_expression == "next Monday"

    def test_reminder_on_current_task(self, classification_input):
        result = _classify(classification_input, "remind me at 5 PM")
        assert result.intent == Intent.REMIND
        assert result.target_task_id == "t-passport"
        assert result.parameters.due_date_expression == "5 PM"

    def test_relay_to_partner(self, classification_input):
        result = _classify(classification_input, "remind Marco to buy lemons")
        assert result.intent == Intent.PARTNER_MESSAGE
        assert result.parameters.partner_message_content == "buy lemons"
        assert result.parameters.partner_action == PartnerAction.REMIND

    def test_notify_partner(self, classification_input):
        result = _classify(classification_input, "let Almu know that dinner is at 8")
        assert result.intent == Intent.PARTNER_MESSAGE
        assert result.parameters.partner_action == PartnerAction.NOTIFY
        assert result.parameters.partner_message_content == "dinner is at 8"


class TestExpense:
    def test_currency_amount(self, classification_input):
        result = _classify(classification_input, "spent $45 on dinner")
        assert result.intent == Intent.EXPENSE
        assert result.parameters.amount == 45.0
        assert result.parameters.expense_description == "dinner"

    def test_bare_amount(self, classification_input):
        result = _classify(classification_input, "$20 gas")
        assert result.parameters.amount == 20.0
        assert result.parameters.expense_description == "gas"

    def test_thousands_separator(self, classification_input):
        result = _classify(classification_input, "spent $1,250 on rent")
        assert result.intent == Intent.EXPENSE
        assert result.parameters.amount == 1250.0
        assert result.parameters.expense_description == "rent"

    def test_thousands_separator_with_decimals(self, classification_input):
        result = _classify(classification_input, "paid 1,250.50 for the couch")
        assert result.intent == Intent.EXPENSE
        assert result.parameters.amount == 1250.5
        assert result.parameters.expense_description == "the couch"

    def test_decimal_comma(self, classification_input):
        result = _classify(classification_input, "paid 12,5 for parking")
        assert result.parameters.amount == 12.5

    @pytest.mark.parametrize(
        "message", ["spent 3 hours on taxes", "spent 1.5 hrs cleaning", "spend 2 days in Rome"]
    )
    def test_durations_are_not_expenses(self, classification_input, message):
        result = _classify(classification_input, message)
        assert result.intent != Intent.EXPENSE
        assert result.parameters.amount is None


class TestConversationAndSearch:
    @pytest.mark.parametrize(
        ("message", "chat_type"),
        [
            ("good morning", ChatType.GREETING),
            ("summarize my week", ChatType.WEEKLY_SUMMARY),
            ("help me plan my day", ChatType.PLANNING),
            ("how am I doing?", ChatType.PROGRESS_CHECK),
        ],
    )
    def test_chat_types(self, classification_input, message, chat_type):
        result = _classify(classification_input, message)
        assert result.intent == Intent.CHAT
        assert result.parameters.chat_type == chat_type

    def test_urgent_search(self, classification_input):
        result = _classify(classification_input, "what's urgent?")
        assert result.intent == Intent.SEARCH
        assert result.parameters.query_type == QueryType.URGENT

    def test_named_list_search(self, classification_input):
        result = _classify(classification_input, "groceries list")
        assert result.intent == Intent.SEARCH
        assert result.parameters.list_name == "groceries"

    def test_bare_noun_is_search_not_create(self, classification_input):
        result = _classify(classification_input, "groceries")
        assert result.intent == Intent.SEARCH
        assert result.parameters.list_name == "groceries"

    def test_question_is_contextual_ask(self, classification_input):
        assert _classify(classification_input, "when is the dentist?").intent == Intent.CONTEXTUAL_ASK

    def test_new_item_is_create(self, classification_input):
        result = _classify(classification_input, "buy milk tomorrow")
        assert result.intent == Intent.CREATE
        assert result.parameters.due_date_expression == "tomorrow"
        assert result.parameters.is_urgent is None

    def test_urgent_create(self, classification_input):
        result = _classify(classification_input, "call mom asap")
        assert result.intent == Intent.CREATE
        assert result.parameters.is_urgent is True

    def test_empty_message(self, classification_input):
        result = _classify(classification_input, "   ")
        assert result.intent == Intent.CHAT
        assert result.confidence < 0.5


@pytest.mark.parametrize(
    "message",
    ["", "?", "ok", "🙂", "ciao bella", "asdf qwer zxcv", "$", "remind", "move", "12:30"],
)
def test_always_returns_vocabulary_member(classification_input, message):
    result = _classify(classification_input, message)
    assert result.intent in set(Intent)
    assert 0.0 <= result.confidence <= 0.8
