"""Foundation - errors and configuration shared by the runtime."""

from __future__ import annotations

__all__ = [
    # Errors
    "RetryError", "StepError", "ChainError", "ParallelError", "Sentinel", "is_error", "iter_chain",
    # Config
    "StepretrySettings", "RetrySettings", "LoggingSettings", "get_settings", "clear_settings_cache",
]


def __getattr__(name: str):
    """Lazy imports to keep pydantic-settings off the error-only import path."""
    if name in ("RetryError", "StepError", "ChainError", "ParallelError", "Sentinel", "is_error", "iter_chain"):
        from . import errors
        return getattr(errors, name)

    if name in ("StepretrySettings", "RetrySettings", "LoggingSettings", "get_settings", "clear_settings_cache"):
        from . import config
        return getattr(config, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
