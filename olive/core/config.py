"""Configuration management for the Olive routing core."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    OLIVE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Anthropic configuration (optional: classifier degrades to keyword fallback)
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")

    # Supabase configuration (optional: telemetry and context fetchers)
    SUPABASE_URL: str | None = Field(default=None, description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None, description="Supabase service role key"
    )

    # Intent classification
    CLASSIFIER_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Model for intent classification"
    )
    CLASSIFIER_TEMPERATURE: float = Field(
        default=0.1, description="Sampling temperature for classification"
    )
    CLASSIFIER_MAX_TOKENS: int = Field(
        default=500, description="Output token ceiling for classification"
    )
    CLASSIFIER_TIMEOUT_SECONDS: float = Field(
        default=10.0, description="Timeout for a single classification call"
    )

    # Response tiers (cheapest -> costliest)
    MODEL_LITE: str = Field(default="claude-haiku-4-5-20251001", description="Lite tier model")
    MODEL_STANDARD: str = Field(default="claude-sonnet-4-6", description="Standard tier model")
    MODEL_PRO: str = Field(default="claude-opus-4-6", description="Pro tier model")

    # Context window budget
    CONTEXT_MAX_TOKENS: int = Field(default=8000, description="Context window ceiling in tokens")
    CONTEXT_FLUSH_THRESHOLD: float = Field(
        default=0.75, description="Usage fraction that triggers a memory flush"
    )
    CONTEXT_COMPACT_THRESHOLD: float = Field(
        default=0.85, description="Usage fraction that triggers compaction"
    )
    CONTEXT_COMPACTION_TARGET: float = Field(
        default=0.70, description="Usage fraction compaction aims for"
    )

    # Routing
    AUTO_EXECUTE_MIN_CONFIDENCE: float = Field(
        default=0.7, description="Minimum confidence to execute an action without confirming"
    )
    ROUTER_LOG_ENABLED: bool = Field(
        default=True, description="Write routing decisions to olive_router_log"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables hold invalid values
    """
    return Settings()
