"""Application configuration and feature flags."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "Civix Compliance Assistant"
    debug: bool = False
    log_level: str = "INFO"

    # Storage
    database_url: str | None = None
    rules_dir: str | None = None  # defaults to the bundled backend/rules/data
    seed_on_startup: bool = True

    # Provider credentials (absent keys disable that provider)
    gemini_api_key: str | None = None
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None

    # Provider selection
    ai_primary_provider: str = "gemini"
    ai_fallback_enabled: bool = True
    ai_max_fallbacks: int = 1
    ai_request_timeout: float = 30.0

    # Model selections
    gemini_model_fast: str = "gemini-2.0-flash"
    gemini_model_pro: str = "gemini-1.5-pro"
    anthropic_model_fast: str = "claude-3-5-haiku-latest"
    anthropic_model_pro: str = "claude-sonnet-4-20250514"
    openai_model_fast: str = "gpt-4o-mini"
    openai_model_pro: str = "gpt-4o"

    # Conversation
    auto_accept_confidence: float = 0.85
    turn_timeout_seconds: float | None = None
    skip_invalid_rules: bool = False

    # Usage
    free_query_limit: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
