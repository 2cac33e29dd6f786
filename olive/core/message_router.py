"""Message router: classify -> fall back -> route -> log, for one inbound message.

Shared by every inbound channel (WhatsApp and in-app chat) so both make the
same decision for the same message.

Usage:
    from olive.core.message_router import route_message

    route = await route_message(classification_input, user_id=user_id, source="whatsapp")
    if route.needs_disambiguation:
        ...  # ask which task
    elif route.auto_execute:
        ...  # run the action, reply with route.response_model
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from olive.context.intent_classifier import classify_intent
from olive.context.intent_fallback import classify_intent_fallback
from olive.context.models import (
    ClassificationInput,
    ClassificationResult,
    ClassifiedIntent,
    Intent,
    RouteDecision,
)
from olive.core.config import Settings, get_settings
from olive.core.logging import get_logger, log_with_context
from olive.core.model_router import get_model, route_intent
from olive.db.router_log import RouterLogEntry, log_router_decision

logger = get_logger(__name__)

FALLBACK_CLASSIFIER_NAME = "keyword_fallback"

# Intents that act on one existing task and cannot run without its id
TASK_TARGETING_INTENTS: frozenset[Intent] = frozenset({
    Intent.COMPLETE,
    Intent.SET_PRIORITY,
    Intent.SET_DUE,
    Intent.DELETE,
    Intent.MOVE,
    Intent.ASSIGN,
})

Classifier = Callable[..., Awaitable[ClassificationResult]]


class MessageRoute(BaseModel):
    """Everything the reply layer needs to act on one message."""

    classification: ClassifiedIntent
    route: RouteDecision
    response_model: str | None = Field(
        default=None, description="Model for reply generation; None for template confirmations"
    )
    used_fallback: bool = False
    auto_execute: bool = False
    needs_disambiguation: bool = False
    request_id: str = Field(..., description="Correlates every log line for this message")
    classification_latency_ms: int = Field(default=0, ge=0)
    total_latency_ms: int = Field(default=0, ge=0)


def needs_task_disambiguation(classified: ClassifiedIntent) -> bool:
    """Whether a task-targeting intent is missing its task id."""
    return classified.intent in TASK_TARGETING_INTENTS and classified.target_task_id is None


async def route_message(
    classification_input: ClassificationInput,
    user_id: UUID | str | None = None,
    source: Literal["whatsapp", "in_app_chat"] = "in_app_chat",
    classifier: Classifier = classify_intent,
    settings: Settings | None = None,
    request_id: str | None = None,
) -> MessageRoute:
    """
    Classify and route one message.

    Args:
        classification_input: Message plus user context
        user_id: Owner of the message; router telemetry is only written when set
        source: Inbound channel
        classifier: Async classifier (defaults to the LLM classifier)
        settings: Settings override
        request_id: Correlation id for log lines; generated when omitted

    Returns:
        MessageRoute. Never raises on classifier failure.
    """
    settings = settings or get_settings()
    request_id = request_id or uuid4().hex
    started = time.perf_counter()

    try:
        result = await classifier(classification_input, settings=settings)
    except Exception as e:
        log_with_context(
            logger, logging.ERROR, f"Classifier raised {type(e).__name__}: {e}",
            request_id=request_id,
        )
        result = ClassificationResult(intent=None, latency_ms=0)

    used_fallback = result.intent is None
    if used_fallback:
        log_with_context(
            logger, logging.INFO, "Falling back to keyword classification",
            request_id=request_id,
        )
        classified = classify_intent_fallback(classification_input)
    else:
        classified = result.intent

    chat_type = classified.parameters.chat_type
    decision = route_intent(classified.intent, chat_type.value if chat_type else None)
    response_model = None if decision.reason == "db_operation" else get_model(
        decision.response_tier, settings
    )

    needs_disambiguation = needs_task_disambiguation(classified)
    auto_execute = (
        classified.confidence >= settings.AUTO_EXECUTE_MIN_CONFIDENCE
        and not needs_disambiguation
    )
    total_latency_ms = int((time.perf_counter() - started) * 1000)

    route = MessageRoute(
        classification=classified,
        route=decision,
        response_model=response_model,
        used_fallback=used_fallback,
        auto_execute=auto_execute,
        needs_disambiguation=needs_disambiguation,
        request_id=request_id,
        classification_latency_ms=result.latency_ms,
        total_latency_ms=total_latency_ms,
    )

    log_with_context(
        logger,
        logging.INFO,
        "Routed message",
        request_id=request_id,
        intent=classified.intent.value,
        tier=decision.response_tier.value,
        reason=decision.reason,
        fallback=used_fallback,
        auto_execute=auto_execute,
        total_ms=total_latency_ms,
    )

    if user_id and settings.ROUTER_LOG_ENABLED:
        log_router_decision(
            RouterLogEntry(
                user_id=user_id,
                source=source,
                raw_text=classification_input.message,
                classified_intent=classified.intent.value,
                confidence=classified.confidence,
                chat_type=chat_type.value if chat_type else None,
                classification_model=(
                    FALLBACK_CLASSIFIER_NAME if used_fallback else settings.CLASSIFIER_MODEL
                ),
                response_model=response_model,
                route_reason=decision.reason,
                classification_latency_ms=result.latency_ms,
                total_latency_ms=total_latency_ms,
            )
        )

    return route
