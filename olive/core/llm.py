"""LLM client utilities for structured-output calls."""

import json
import re

from anthropic import AsyncAnthropic

from olive.core.config import Settings, get_settings


def get_async_client(settings: Settings | None = None) -> AsyncAnthropic | None:
    """
    Get an Anthropic async client configured from settings.

    Args:
        settings: Settings override (defaults to cached settings)

    Returns:
        AsyncAnthropic instance, or None when no API key is configured
    """
    settings = settings or get_settings()
    if not settings.ANTHROPIC_API_KEY:
        return None

    return AsyncAnthropic(
        api_key=settings.ANTHROPIC_API_KEY,
        timeout=settings.CLASSIFIER_TIMEOUT_SECONDS,
        # Retry belongs to the caller, not the classification call
        max_retries=0,
    )


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json_dict(raw_output: str) -> dict:
    """
    Parse LLM output as JSON, returning a raw dict.

    Use this when fields need normalising before Pydantic validation.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        ValueError: If the JSON is not an object
    """
    cleaned = _strip_llm_fences(raw_output)
    parsed = json.loads(cleaned)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
