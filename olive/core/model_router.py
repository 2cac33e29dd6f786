"""Model router: maps a classified intent to a response model tier.

- DB-only intents (task CRUD) -> lite; the reply is a template confirmation
- expense extraction -> lite
- chat, search, contextual questions, partner relays -> standard
- complex chat (weekly summary, planning) -> pro

Routing is a pure function of (intent, chat_type): no I/O, never raises.
"""

from typing import Any

from olive.context.models import Intent, ResponseTier, RouteDecision
from olive.core.config import Settings, get_settings

# Handled by DB operations plus a template confirmation
DB_ONLY_INTENTS: frozenset[str] = frozenset({
    Intent.COMPLETE.value,
    Intent.SET_PRIORITY.value,
    Intent.SET_DUE.value,
    Intent.DELETE.value,
    Intent.MOVE.value,
    Intent.ASSIGN.value,
    Intent.REMIND.value,
    Intent.MERGE.value,
    Intent.CREATE.value,
})

# Chat sub-types that need deeper reasoning
PRO_CHAT_TYPES: frozenset[str] = frozenset({"weekly_summary", "planning"})

# Tier cost notes (per 1M tokens, input/output) for the default models
MODEL_TIERS: dict[ResponseTier, str] = {
    ResponseTier.LITE: "classification, simple extraction, template confirmations ($0.80/$4)",
    ResponseTier.STANDARD: "general reasoning, chat, search formatting ($3/$15)",
    ResponseTier.PRO: "complex planning, multi-factor analysis ($15/$75)",
}


def _as_str(value: Any) -> str:
    if isinstance(value, Intent):
        return value.value
    if hasattr(value, "value") and isinstance(value.value, str):
        return value.value
    if value is None:
        return ""
    return str(value)


def route_intent(intent: Intent | str | Any, chat_type: str | None = None) -> RouteDecision:
    """
    Decide the response tier for a classified intent.

    Rules are checked in order; the first match wins.

    Args:
        intent: Intent member or raw intent string (unknown values are accepted)
        chat_type: Chat sub-type, only consulted for chat

    Returns:
        RouteDecision with a non-empty reason
    """
    name = _as_str(intent)
    sub_type = _as_str(chat_type) or None

    if name in DB_ONLY_INTENTS:
        return RouteDecision(response_tier=ResponseTier.LITE, reason="db_operation")

    if name == Intent.EXPENSE.value:
        return RouteDecision(response_tier=ResponseTier.LITE, reason="simple_extraction")

    if name == Intent.CHAT.value:
        if sub_type in PRO_CHAT_TYPES:
            return RouteDecision(response_tier=ResponseTier.PRO, reason=f"complex_chat:{sub_type}")
        return RouteDecision(
            response_tier=ResponseTier.STANDARD, reason=f"chat:{sub_type or 'general'}"
        )

    if name == Intent.CONTEXTUAL_ASK.value:
        return RouteDecision(response_tier=ResponseTier.STANDARD, reason="contextual_search")

    if name == Intent.SEARCH.value:
        return RouteDecision(response_tier=ResponseTier.STANDARD, reason="search")

    if name == Intent.PARTNER_MESSAGE.value:
        return RouteDecision(response_tier=ResponseTier.STANDARD, reason="partner_relay")

    return RouteDecision(response_tier=ResponseTier.STANDARD, reason=f"fallback:{name}")


def get_model(tier: ResponseTier | str, settings: Settings | None = None) -> str:
    """Resolve a response tier to a concrete model id. Unknown tiers get the standard model."""
    settings = settings or get_settings()
    models = {
        ResponseTier.LITE.value: settings.MODEL_LITE,
        ResponseTier.STANDARD.value: settings.MODEL_STANDARD,
        ResponseTier.PRO.value: settings.MODEL_PRO,
    }
    return models.get(_as_str(tier), settings.MODEL_STANDARD)
