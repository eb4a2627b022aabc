"""Environment-based configuration using pydantic-settings.

Provides validated retry defaults from environment variables.
Supports .env files and nested configuration.

Example:
    >>> from stepretry.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.count
    1
    >>> settings.logging.level
    'WARNING'

    # Or with environment variables:
    # STEPRETRY_RETRY_COUNT=5
    # STEPRETRY_RETRY_MODE=exponential
    # STEPRETRY_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrySettings(BaseSettings):
    """Default retry policy values.

    Values are not clamped here; ``Policy.from_settings`` applies the
    same clamping as any other construction path.
    """

    model_config = SettingsConfigDict(
        env_prefix="STEPRETRY_RETRY_",
        extra="ignore",
    )

    count: int = Field(default=1, description="Total attempts per step")
    sleep: float = Field(default=0.5, description="Base delay in seconds")
    jitter: float = Field(default=0.0, description="Jitter in seconds")
    mode: Literal["simple", "linear", "exponential", "fibonacci"] = "simple"
    parallelism: int = Field(default=0, description="Max concurrent steps, 0 = unlimited")
    verbose: bool = False

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STEPRETRY_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class StepretrySettings(BaseSettings):
    """Root settings, loaded from STEPRETRY_ environment variables and .env.

    Example environment variables:
        STEPRETRY_RETRY_COUNT=3
        STEPRETRY_RETRY_SLEEP=0.25
        STEPRETRY_RETRY_PARALLELISM=4
        STEPRETRY_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="STEPRETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> StepretrySettings:
    """Get the global settings instance (cached)."""
    return StepretrySettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    The next get_settings() call reloads from the environment.
    """
    get_settings.cache_clear()
