"""Router telemetry: one row per classification + routing decision in olive_router_log."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from olive.core.logging import get_logger
from olive.db.supabase_client import get_supabase

logger = get_logger(__name__)

RAW_TEXT_MAX_CHARS = 200


class RouterLogEntry(BaseModel):
    """A single routing decision, as written to olive_router_log."""

    user_id: UUID | str
    source: Literal["whatsapp", "in_app_chat"] = "in_app_chat"
    raw_text: str
    classified_intent: str
    confidence: float
    chat_type: str | None = None
    classification_model: str
    response_model: str | None = None
    route_reason: str
    classification_latency_ms: int = Field(default=0, ge=0)
    total_latency_ms: int = Field(default=0, ge=0)

    def to_row(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "source": self.source,
            "raw_text": self.raw_text[:RAW_TEXT_MAX_CHARS],
            "classified_intent": self.classified_intent,
            "confidence": self.confidence,
            "chat_type": self.chat_type or None,
            "classification_model": self.classification_model,
            "response_model": self.response_model or None,
            "route_reason": self.route_reason,
            "classification_latency_ms": self.classification_latency_ms,
            "total_latency_ms": self.total_latency_ms,
        }


def log_router_decision(entry: RouterLogEntry) -> None:
    """Insert a routing decision. Fire-and-forget."""
    try:
        client = get_supabase()
        client.table("olive_router_log").insert(entry.to_row()).execute()

        logger.debug(
            f"Router decision logged: intent={entry.classified_intent} "
            f"reason={entry.route_reason} total={entry.total_latency_ms}ms"
        )
    except Exception as e:
        # Telemetry never breaks a user turn
        logger.error(f"Failed to log router decision: {e}")
