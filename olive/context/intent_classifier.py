"""LLM intent classification with forced structured output.

Single Haiku call per message using tool_use with a fixed input schema, so the
intent is constrained to the closed vocabulary at generation time. The tool
input is then validated locally (pydantic) and normalised before it is trusted:

- parameters that do not apply to the chosen intent are nulled
- a target_task_id that is not an active task is dropped
- a target task that does not contain every word of the user's reference is
  re-resolved conjunctively; ties leave target_task_id null for the caller
  to disambiguate

No retry. Any failure (no API key, network, timeout, missing tool block,
schema violation) returns ClassificationResult(intent=None) and the caller
falls back to keyword heuristics.

Usage:
    from olive.context.intent_classifier import classify_intent

    result = await classify_intent(classification_input)
    if result.intent is None:
        ...  # use classify_intent_fallback()
"""

import time
from typing import Any

from anthropic import AsyncAnthropic

from olive.context.models import (
    ActiveTask,
    ClassificationInput,
    ClassificationResult,
    ClassifiedIntent,
    Intent,
    IntentParameters,
)
from olive.context.prompt_blocks import (
    BLOCK_CLASSIFIER_CONTEXT,
    BLOCK_CLASSIFIER_INTENTS,
    BLOCK_CLASSIFIER_ROLE,
    BLOCK_CLASSIFIER_RULES,
)
from olive.context.task_matching import find_matching_tasks, salient_tokens
from olive.core.config import Settings, get_settings
from olive.core.llm import get_async_client, parse_llm_json_dict
from olive.core.logging import get_logger

logger = get_logger(__name__)

TOOL_NAME = "classify_intent"

# Prompt rendering caps
MAX_HISTORY_TURNS = 6
MAX_TASKS = 30
MAX_MEMORIES = 10
MAX_OUTBOUND = 3

# Parameters that only mean something for specific intents
INTENT_SCOPED_PARAMETERS: dict[str, frozenset[Intent]] = {
    "chat_type": frozenset({Intent.CHAT}),
    "query_type": frozenset({Intent.SEARCH}),
    "amount": frozenset({Intent.EXPENSE}),
    "expense_description": frozenset({Intent.EXPENSE}),
    "partner_message_content": frozenset({Intent.PARTNER_MESSAGE}),
    "partner_action": frozenset({Intent.PARTNER_MESSAGE}),
}

_NULL_STRINGS = {"", "null", "none"}


def _nullable(json_type: str, enum: list[str] | None = None, description: str | None = None) -> dict:
    schema: dict[str, Any] = {"type": [json_type, "null"]}
    if enum is not None:
        schema["enum"] = [*enum, None]
    if description:
        schema["description"] = description
    return schema


# =============================================================================
# Tool schema for forced structured output
# =============================================================================

CLASSIFY_INTENT_TOOL = {
    "name": TOOL_NAME,
    "description": "Submit the single intent classification for the user's message.",
    "input_schema": {
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "enum": [i.value for i in Intent],
            },
            "target_task_id": _nullable("string", description="Id of the referenced active task"),
            "target_task_name": _nullable(
                "string", description="The user's own words for the referenced task"
            ),
            "matched_skill_id": _nullable("string"),
            "parameters": {
                "type": "object",
                "properties": {
                    "priority": _nullable("string"),
                    "due_date_expression": _nullable("string"),
                    "query_type": _nullable(
                        "string",
                        enum=["urgent", "today", "tomorrow", "this_week", "recent", "overdue", "general"],
                    ),
                    "chat_type": _nullable(
                        "string",
                        enum=[
                            "briefing", "weekly_summary", "daily_focus", "productivity_tips",
                            "progress_check", "motivation", "planning", "greeting", "general",
                        ],
                    ),
                    "list_name": _nullable("string"),
                    "amount": _nullable("number"),
                    "expense_description": _nullable("string"),
                    "is_urgent": _nullable("boolean"),
                    "partner_message_content": _nullable("string"),
                    "partner_action": _nullable(
                        "string", enum=["remind", "tell", "ask", "notify"]
                    ),
                },
                "additionalProperties": False,
            },
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "reasoning": {"type": "string"},
        },
        "required": ["intent", "confidence", "reasoning"],
    },
}


# =============================================================================
# Prompt
# =============================================================================


def build_classification_prompt(classification_input: ClassificationInput) -> str:
    """Render the classifier system prompt with capped user context."""
    ci = classification_input

    conversation = "\n".join(
        f"{'User' if turn.role == 'user' else 'Olive'}: {turn.content}"
        for turn in ci.conversation_history[-MAX_HISTORY_TURNS:]
    )
    outbound = "\n".join(
        f'- Olive said: "{message}"' for message in ci.recent_outbound_messages[:MAX_OUTBOUND]
    )
    tasks = "\n".join(
        f'- [{t.id}] "{t.summary}" (due: {t.due_date or "none"}, priority: {t.priority})'
        for t in ci.active_tasks[:MAX_TASKS]
    )
    memories = "\n".join(
        f"- [{m.category}] {m.title}: {m.content}" for m in ci.user_memories[:MAX_MEMORIES]
    )
    skills = "\n".join(f"- {s.skill_id}: {s.name}" for s in ci.activated_skills)

    return "\n\n".join([
        BLOCK_CLASSIFIER_ROLE,
        BLOCK_CLASSIFIER_INTENTS,
        BLOCK_CLASSIFIER_RULES.format(user_language=ci.user_language or "en"),
        BLOCK_CLASSIFIER_CONTEXT.format(
            conversation=conversation or "No previous conversation.",
            outbound=outbound or "None.",
            tasks=tasks or "No active tasks.",
            memories=memories or "No memories stored.",
            skills=skills or "No skills activated.",
        ),
    ])


# =============================================================================
# Classification
# =============================================================================


async def classify_intent(
    classification_input: ClassificationInput,
    client: AsyncAnthropic | None = None,
    settings: Settings | None = None,
) -> ClassificationResult:
    """
    Classify one message into a structured intent.

    Args:
        classification_input: Message plus conversation/task/memory context
        client: Anthropic client override (defaults to one built from settings)
        settings: Settings override

    Returns:
        ClassificationResult. intent is None on any failure; never raises.
    """
    settings = settings or get_settings()

    if client is None:
        client = get_async_client(settings)
        if client is None:
            logger.warning("No ANTHROPIC_API_KEY configured, classification skipped")
            return ClassificationResult(intent=None, latency_ms=0)

    started = time.perf_counter()
    try:
        response = await client.messages.create(
            model=settings.CLASSIFIER_MODEL,
            max_tokens=settings.CLASSIFIER_MAX_TOKENS,
            temperature=settings.CLASSIFIER_TEMPERATURE,
            system=build_classification_prompt(classification_input),
            messages=[{
                "role": "user",
                "content": f'Classify this message: "{classification_input.message}"',
            }],
            tools=[CLASSIFY_INTENT_TOOL],
            tool_choice={"type": "tool", "name": TOOL_NAME},
        )
        raw = _extract_classification(response)
        classified = normalize_classification(raw, classification_input)
    except Exception as e:
        latency_ms = _elapsed_ms(started)
        logger.error(f"Intent classification failed after {latency_ms}ms: {type(e).__name__}: {e}")
        return ClassificationResult(intent=None, latency_ms=latency_ms)

    latency_ms = _elapsed_ms(started)
    logger.info(
        f"Classified intent={classified.intent.value} confidence={classified.confidence} "
        f"task_id={classified.target_task_id} skill={classified.matched_skill_id} "
        f"latency={latency_ms}ms reasoning={classified.reasoning}"
    )
    return ClassificationResult(intent=classified, latency_ms=latency_ms)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _extract_classification(response: Any) -> dict:
    """Pull the tool input out of the response; fenced JSON text is a fallback only."""
    for block in response.content:
        if getattr(block, "type", None) == "tool_use" and block.name == TOOL_NAME:
            if not isinstance(block.input, dict):
                raise ValueError("classify_intent tool input is not an object")
            return dict(block.input)

    logger.warning("No tool_use block in classification response, falling back to text")
    for block in response.content:
        if getattr(block, "type", None) == "text":
            return parse_llm_json_dict(block.text)

    raise ValueError("Classification response contained no tool_use or text block")


# =============================================================================
# Normalisation
# =============================================================================


def _clean_null(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in _NULL_STRINGS:
        return None
    return value


def normalize_classification(
    raw: dict, classification_input: ClassificationInput
) -> ClassifiedIntent:
    """
    Validate raw classifier output and make it consistent with the input.

    Raises:
        pydantic.ValidationError: intent outside the vocabulary, bad types
        ValueError: parameters is not an object
    """
    data = dict(raw)

    parameters = data.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise ValueError("parameters must be an object")
    data["parameters"] = {k: _clean_null(v) for k, v in parameters.items()}

    for key in ("target_task_id", "target_task_name", "matched_skill_id"):
        data[key] = _clean_null(data.get(key))

    confidence = data.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        data["confidence"] = min(1.0, max(0.0, float(confidence)))

    classified = ClassifiedIntent.model_validate(data)

    skill_ids = {s.skill_id for s in classification_input.activated_skills}
    matched_skill_id = classified.matched_skill_id
    if matched_skill_id is not None and matched_skill_id not in skill_ids:
        logger.debug(f"Dropping unknown matched_skill_id={matched_skill_id}")
        matched_skill_id = None

    return classified.model_copy(update={
        "parameters": _scope_parameters(classified.intent, classified.parameters),
        "target_task_id": reconcile_target_task(
            classified.target_task_id,
            classified.target_task_name,
            classification_input.active_tasks,
        ),
        "matched_skill_id": matched_skill_id,
    })


def _scope_parameters(intent: Intent, parameters: IntentParameters) -> IntentParameters:
    """Null out parameters that do not apply to the intent."""
    updates = {
        field: None
        for field, intents in INTENT_SCOPED_PARAMETERS.items()
        if intent not in intents and getattr(parameters, field) is not None
    }
    if not updates:
        return parameters
    return parameters.model_copy(update=updates)


def reconcile_target_task(
    task_id: str | None,
    task_name: str | None,
    tasks: list[ActiveTask],
) -> str | None:
    """
    Check the classifier's task choice against the active tasks.

    - unknown ids are dropped
    - when the reference has salient words and the chosen task does not contain
      all of them, the unique conjunctive match wins; several matches mean the
      reference is ambiguous and the id is cleared
    - references without a conjunctive match (pronouns, "the last one") keep
      the classifier's choice
    """
    if task_id is None:
        return None

    known_ids = {t.id for t in tasks}
    if task_id not in known_ids:
        logger.debug(f"Dropping target_task_id={task_id}: not an active task")
        return None

    if not salient_tokens(task_name):
        return task_id

    matches = find_matching_tasks(task_name, tasks)
    if len(matches) == 1:
        return matches[0].id
    if len(matches) > 1:
        logger.info(
            f"Ambiguous task reference '{task_name}' matches {len(matches)} tasks, "
            f"deferring disambiguation"
        )
        return None
    return task_id
