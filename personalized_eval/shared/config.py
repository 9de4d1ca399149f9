"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the evaluation core, read from the environment or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Anthropic
    anthropic_api_key: str | None = None

    # LLM Settings
    default_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.7
    # Lower temperature keeps repeated evaluations of the same answer consistent
    evaluation_temperature: float = 0.4

    # Number of response transcripts kept for previous_response_id replay
    transcript_cache_size: int = 256

    # Redis
    redis_url: str = "redis://localhost:6379"

    # Conversation state
    conversation_state_backend: Literal["memory", "redis"] = "memory"
    conversation_state_ttl_seconds: int = 3600

    # User context window sizes
    challenge_history_limit: int = 10
    evaluation_history_limit: int = 5

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
