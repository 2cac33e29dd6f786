"""Keyword/regex intent classification used when the LLM classifier returns nothing.

Deterministic and offline. Covers the same closed vocabulary and the same
disambiguation rules as the LLM path, with confidences capped at 0.8:

- time-change verbs (change/move/postpone/reschedule) map to set_due
- relays to a named person ("remind Marco to ...") map to partner_message
- task references are matched conjunctively against active tasks; pronouns
  resolve to the task most recently mentioned in the conversation
- a bare topic noun ("groceries") is a search, not a create
"""

import re

from olive.context.models import (
    ActiveTask,
    ChatType,
    ClassificationInput,
    ClassifiedIntent,
    Intent,
    IntentParameters,
    PartnerAction,
    QueryType,
)
from olive.context.task_matching import (
    STOPWORDS,
    resolve_task,
    salient_tokens,
    tokenize,
)


_DAYS = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_MONTHS = (
    r"(?:january|february|march|april|may|june|july|august|september|october|"
    r"november|december|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec)"
)

TIME_RE = re.compile(
    r"\b(?:"
    r"\d{1,2}(?::\d{2})?\s*(?:am|pm)"
    r"|\d{1,2}:\d{2}"
    r"|(?:next|this|on)\s+(?:week|weekend|month|" + _DAYS + r")"
    r"|in\s+\d+\s+(?:minutes?|mins?|hours?|hrs?|days?|weeks?|months?)"
    r"|end\s+of\s+(?:the\s+)?(?:day|week|month)"
    r"|" + _MONTHS + r"\s+\d{1,2}(?:st|nd|rd|th)?"
    r"|" + _DAYS +
    r"|today|tonight|tomorrow|tmrw|noon|midnight"
    r")\b",
    re.IGNORECASE,
)

# Thousands groups first so "1,250.50" is not read as "1"
_AMOUNT = r"(\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)(?![.,]?\d)"
_DURATION_UNITS = r"(?:seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?|months?|years?)"

MONEY_RE = re.compile(
    r"(?:[$€£]\s?" + _AMOUNT + r")"
    r"|(?:\b(?:spent|paid|spend)\s+" + _AMOUNT + r"(?!\s*" + _DURATION_UNITS + r"\b))",
    re.IGNORECASE,
)
EXPENSE_FOR_RE = re.compile(r"\b(?:on|for)\s+(.+)$", re.IGNORECASE)

PARTNER_RE = re.compile(
    r"^(remind|tell|ask)\s+(?!me\b|myself\b|us\b|the\b|a\b|my\b)([A-Za-zÀ-ÿ][\w-]*)\s+"
    r"(?:to|that)\s+(.+)$",
    re.IGNORECASE,
)
PARTNER_NOTIFY_RE = re.compile(
    r"^let\s+(?!me\b|us\b)([A-Za-zÀ-ÿ][\w-]*)\s+know\s+(?:that\s+)?(.+)$",
    re.IGNORECASE,
)
PARTNER_ACTIONS: dict[str, PartnerAction] = {
    "remind": PartnerAction.REMIND,
    "tell": PartnerAction.TELL,
    "ask": PartnerAction.ASK,
}

REMIND_RE = re.compile(r"\bremind\s+me\b(?:\s+(?:to|about|that))?\s*(.*)$", re.IGNORECASE)
TIME_CHANGE_RE = re.compile(r"\b(change|move|push|postpone|reschedule|delay)\b", re.IGNORECASE)
ALWAYS_TIME_CHANGE_RE = re.compile(r"\b(postpone|reschedule|delay)\b", re.IGNORECASE)
MOVE_RE = re.compile(
    r"\b(?:move|put)\s+(.*?)\s*\b(?:to|in|into)\s+(?:the\s+|my\s+)?([\w -]+?)(?:\s+list)?$",
    re.IGNORECASE,
)
COMPLETE_RE = re.compile(
    r"\b(done|finished|complete|completed|check(?:ed)?\s+off|mark(?:ed)?\b.*\bdone)\b",
    re.IGNORECASE,
)
DELETE_RE = re.compile(
    r"\b(delete|remove|cancel|never\s*mind|forget\s+about)\b", re.IGNORECASE
)
CANCEL_OWN_THING_RE = re.compile(r"^cancel\s+my\b", re.IGNORECASE)
PRIORITY_RE = re.compile(
    r"(?:\b(?:make|mark|set|flag)\b.*\b(urgent|high\s+priority|low\s+priority|important|"
    r"top\s+priority|not\s+urgent)\b)"
    r"|(?:^(?:this\s+is|it'?s|that'?s)\s+(urgent|important|low\s+priority|high\s+priority)\b)",
    re.IGNORECASE,
)
ASSIGN_RE = re.compile(
    r"\b(?:assign|give|hand|pass)\b.*\bto\s+(?:my\s+)?(\w+)\s*$"
    r"|\blet\s+(?:him|her|them)\s+handle\b",
    re.IGNORECASE,
)
ASSIGNEE_TAIL_RE = re.compile(r"\b(?:to|with)\s+(?:my\s+)?\w+\s*$", re.IGNORECASE)

CHAT_PATTERNS: list[tuple[re.Pattern, ChatType]] = [
    (re.compile(r"\b(summar(?:y|ize|ise)\b.*\bweek|week\s+in\s+review|how\s+was\s+my\s+week)", re.I),
     ChatType.WEEKLY_SUMMARY),
    (re.compile(r"\b(help\s+me\s+plan|plan\s+(?:my|the|our)\s+(?:day|week|weekend))", re.I),
     ChatType.PLANNING),
    (re.compile(r"\b(what\s+should\s+i\s+(?:focus|do|work)|focus\s+on\s+today)", re.I),
     ChatType.DAILY_FOCUS),
    (re.compile(r"\b(how\s+am\s+i\s+doing|my\s+progress|progress\s+check)", re.I),
     ChatType.PROGRESS_CHECK),
    (re.compile(r"\b(motivat\w*|overwhelmed|encourage\w*|cheer\s+me\s+up)", re.I),
     ChatType.MOTIVATION),
    (re.compile(r"\b(productivity|tips?\s+(?:to|for)\s+(?:be|get|stay))", re.I),
     ChatType.PRODUCTIVITY_TIPS),
    (re.compile(r"\b(briefing|brief\s+me|what'?s\s+on\s+(?:my|the)\s+(?:plate|agenda))", re.I),
     ChatType.BRIEFING),
    (re.compile(r"^(hi|hello|hey|hola|ciao|good\s+(?:morning|afternoon|evening|night)|buenos\s+d[ií]as|thanks|thank\s+you)\b", re.I),
     ChatType.GREETING),
]

SEARCH_RE = re.compile(
    r"^(?:show|list|see|find|view|display)\b"
    r"|^(?:what'?s|whats|what\s+is|what\s+are|anything)\b.*\b(?:urgent|due|overdue|today|tomorrow|"
    r"this\s+week|on\s+my\s+list|tasks?|to-?dos?)\b"
    r"|\bmy\s+(?:tasks|lists?|to-?dos?|agenda)\b"
    r"|\blist\s*\??$",
    re.IGNORECASE,
)
LIST_NAME_RE = re.compile(r"\b([\w-]+)\s+list\b", re.IGNORECASE)
QUERY_TYPE_PATTERNS: list[tuple[re.Pattern, QueryType]] = [
    (re.compile(r"\b(overdue|past\s+due|late)\b", re.I), QueryType.OVERDUE),
    (re.compile(r"\b(urgent|important)\b", re.I), QueryType.URGENT),
    (re.compile(r"\btoday\b", re.I), QueryType.TODAY),
    (re.compile(r"\btomorrow\b", re.I), QueryType.TOMORROW),
    (re.compile(r"\b(this\s+)?week\b", re.I), QueryType.THIS_WEEK),
    (re.compile(r"\b(recent|latest|last\s+added)\b", re.I), QueryType.RECENT),
]

QUESTION_RE = re.compile(
    r"^(?:when|where|what|who|which|how|why|does|did|do\s+(?:i|we)|is|are|any)\b",
    re.IGNORECASE,
)
CREATE_VERB_RE = re.compile(
    r"\b(buy|call|pick|get|book|pay|email|text|schedule|clean|fix|make|send|write|order|"
    r"return|bring|cook|wash|water|walk|feed|renew|visit)\b",
    re.IGNORECASE,
)
URGENT_RE = re.compile(r"\b(urgent|asap|important)\b", re.IGNORECASE)


# =============================================================================
# Helpers
# =============================================================================


def extract_due_date_expression(text: str) -> str | None:
    """First time-like expression in the text, in the user's casing."""
    match = TIME_RE.search(text)
    if not match:
        return None
    return match.group(0).strip()


def _parse_amount(raw: str) -> float:
    """Amount with "," or "." separators; the last one is decimal only before 1-2 digits."""
    last = max(raw.rfind(","), raw.rfind("."))
    whole, decimals = raw, ""
    if last != -1 and len(raw) - last - 1 in (1, 2):
        whole, decimals = raw[:last], raw[last + 1:]
    whole = whole.replace(",", "").replace(".", "")
    return float(f"{whole}.{decimals}" if decimals else whole)


def _task_from_history(
    classification_input: ClassificationInput,
) -> ActiveTask | None:
    """The task most recently mentioned in the conversation, scanning newest first."""
    tasks = classification_input.active_tasks
    for turn in reversed(classification_input.conversation_history):
        turn_tokens = set(tokenize(turn.content))
        hits = []
        for task in tasks:
            task_tokens = salient_tokens(task.summary)
            if task_tokens and all(token in turn_tokens for token in task_tokens):
                hits.append(task)
        if len(hits) == 1:
            return hits[0]
        if len(hits) > 1:
            return None
    return None


def _resolve_target(
    text: str, classification_input: ClassificationInput
) -> tuple[str | None, str | None]:
    """(target_task_id, target_task_name) for the task referenced in text."""
    cleaned = TIME_RE.sub(" ", text)
    tokens = salient_tokens(cleaned)

    if tokens:
        reference = " ".join(tokens)
        task = resolve_task(reference, classification_input.active_tasks)
        return (task.id if task else None), reference

    # Pronoun or bare command: the task in focus in the conversation
    recent = _task_from_history(classification_input)
    if recent is not None:
        return recent.id, recent.summary
    return None, None


def _targeted(
    intent: Intent,
    text: str,
    classification_input: ClassificationInput,
    reasoning: str,
    parameters: IntentParameters | None = None,
) -> ClassifiedIntent:
    task_id, task_name = _resolve_target(text, classification_input)
    return ClassifiedIntent(
        intent=intent,
        target_task_id=task_id,
        target_task_name=task_name,
        parameters=parameters or IntentParameters(),
        confidence=0.75 if task_id else 0.6,
        reasoning=reasoning,
    )


def _detect_query_type(text: str) -> QueryType:
    for pattern, query_type in QUERY_TYPE_PATTERNS:
        if pattern.search(text):
            return query_type
    return QueryType.GENERAL


def _detect_list_name(text: str) -> str | None:
    match = LIST_NAME_RE.search(text)
    if not match:
        return None
    name = match.group(1).lower()
    if name in STOPWORDS or name in {"what", "whats", "s"}:
        return None
    return name


# =============================================================================
# Classification
# =============================================================================


def classify_intent_fallback(classification_input: ClassificationInput) -> ClassifiedIntent:
    """
    Classify a message with keyword heuristics.

    Always returns an intent from the closed vocabulary; never raises.
    """
    message = classification_input.message.strip()
    lower = message.lower()

    if not message:
        return ClassifiedIntent(
            intent=Intent.CHAT,
            parameters=IntentParameters(chat_type=ChatType.GENERAL),
            confidence=0.3,
            reasoning="empty message",
        )

    if lower == "merge":
        return ClassifiedIntent(intent=Intent.MERGE, confidence=0.8, reasoning="exact merge command")

    # Expense
    money = MONEY_RE.search(message)
    if money:
        amount = _parse_amount(money.group(1) or money.group(2))
        tail = message[money.end():].strip()
        described = EXPENSE_FOR_RE.search(tail)
        description = (described.group(1) if described else tail).strip(" .!") or None
        return ClassifiedIntent(
            intent=Intent.EXPENSE,
            parameters=IntentParameters(amount=amount, expense_description=description),
            confidence=0.8,
            reasoning="amount of money mentioned",
        )

    # Relay to partner
    relay = PARTNER_RE.match(message)
    if relay:
        return ClassifiedIntent(
            intent=Intent.PARTNER_MESSAGE,
            parameters=IntentParameters(
                partner_message_content=relay.group(3).strip(),
                partner_action=PARTNER_ACTIONS[relay.group(1).lower()],
                due_date_expression=extract_due_date_expression(relay.group(3)),
            ),
            confidence=0.75,
            reasoning=f"relay to {relay.group(2)}",
        )
    notify = PARTNER_NOTIFY_RE.match(message)
    if notify:
        return ClassifiedIntent(
            intent=Intent.PARTNER_MESSAGE,
            parameters=IntentParameters(
                partner_message_content=notify.group(2).strip(),
                partner_action=PartnerAction.NOTIFY,
            ),
            confidence=0.75,
            reasoning=f"notify {notify.group(1)}",
        )

    # Reminder for the user
    remind = REMIND_RE.search(message)
    if remind:
        subject = remind.group(1)
        due = extract_due_date_expression(message)
        if subject and salient_tokens(TIME_RE.sub(" ", subject)):
            name = re.sub(r"\s+", " ", TIME_RE.sub(" ", subject))
            name = re.sub(r"\s+(?:at|on|by)?\s*$", "", name).strip()
            task = resolve_task(name, classification_input.active_tasks)
            task_id = task.id if task else None
            return ClassifiedIntent(
                intent=Intent.REMIND,
                target_task_id=task_id,
                target_task_name=name or None,
                parameters=IntentParameters(due_date_expression=due),
                confidence=0.75,
                reasoning="reminder with subject",
            )
        return _targeted(
            Intent.REMIND, "", classification_input, "reminder on current task",
            IntentParameters(due_date_expression=due),
        )

    # Time change on an existing task
    due = extract_due_date_expression(message)
    if TIME_CHANGE_RE.search(message) and (due or ALWAYS_TIME_CHANGE_RE.search(message)):
        return _targeted(
            Intent.SET_DUE, message, classification_input, "time change verb",
            IntentParameters(due_date_expression=due),
        )

    move = MOVE_RE.search(message)
    if move:
        return _targeted(
            Intent.MOVE, move.group(1), classification_input, "move to list",
            IntentParameters(list_name=move.group(2).strip().lower()),
        )

    priority = PRIORITY_RE.search(message)
    if priority:
        level = (priority.group(1) or priority.group(2)).lower()
        value = "low" if ("low" in level or "not" in level) else "high"
        return _targeted(
            Intent.SET_PRIORITY, PRIORITY_RE.sub(" ", message), classification_input,
            "priority change", IntentParameters(priority=value),
        )

    if ASSIGN_RE.search(message):
        return _targeted(
            Intent.ASSIGN, ASSIGNEE_TAIL_RE.sub(" ", message), classification_input,
            "assign to partner",
        )

    if COMPLETE_RE.search(message):
        return _targeted(Intent.COMPLETE, message, classification_input, "completion keyword")

    if DELETE_RE.search(message):
        result = _targeted(Intent.DELETE, message, classification_input, "removal keyword")
        if CANCEL_OWN_THING_RE.match(message) and result.target_task_id is None:
            return ClassifiedIntent(
                intent=Intent.CREATE,
                parameters=IntentParameters(due_date_expression=due),
                confidence=0.5,
                reasoning="cancel request for something that is not a task",
            )
        return result

    for pattern, chat_type in CHAT_PATTERNS:
        if pattern.search(message):
            return ClassifiedIntent(
                intent=Intent.CHAT,
                parameters=IntentParameters(chat_type=chat_type),
                confidence=0.7,
                reasoning=f"chat: {chat_type.value}",
            )

    if SEARCH_RE.search(message):
        return ClassifiedIntent(
            intent=Intent.SEARCH,
            parameters=IntentParameters(
                query_type=_detect_query_type(message),
                list_name=_detect_list_name(message),
            ),
            confidence=0.7,
            reasoning="listing request",
        )

    if message.endswith("?") or QUESTION_RE.match(message):
        return ClassifiedIntent(
            intent=Intent.CONTEXTUAL_ASK,
            confidence=0.6,
            reasoning="question about saved data",
        )

    # Bare topic noun: inspect, don't save
    words = message.split()
    if len(words) <= 2 and not CREATE_VERB_RE.search(message) and not due:
        return ClassifiedIntent(
            intent=Intent.SEARCH,
            parameters=IntentParameters(
                query_type=QueryType.GENERAL,
                list_name=lower.strip(" .!"),
            ),
            confidence=0.55,
            reasoning="bare topic without a verb",
        )

    return ClassifiedIntent(
        intent=Intent.CREATE,
        parameters=IntentParameters(
            due_date_expression=due,
            is_urgent=True if URGENT_RE.search(message) else None,
        ),
        confidence=0.6,
        reasoning="new item to save",
    )
