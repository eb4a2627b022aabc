"""Failure reporting for retried steps.

A failure sink receives one record per failed attempt when the policy is
verbose. The default sink writes through the ``stepretry.retry`` logger;
pass any callable with the same signature to capture records instead.

Example:
    >>> records = []
    >>> retrier = Retrier(policy, sink=lambda name, n, exc: records.append((name, n, exc)))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

__all__ = ["FailureSink", "LogSink", "emit", "configure_logging"]

logger = logging.getLogger("stepretry.retry")


@runtime_checkable
class FailureSink(Protocol):
    """Receives (step name, 0-based attempt, exception) for each failed attempt."""

    def __call__(self, name: str, attempt: int, exc: BaseException) -> None: ...


@dataclass(frozen=True, slots=True)
class LogSink:
    """Writes failure records to a stdlib logger."""

    log: logging.Logger = field(default=logger)
    level: int = logging.WARNING

    def __call__(self, name: str, attempt: int, exc: BaseException) -> None:
        self.log.log(self.level, "step %s:%d err: %s", name, attempt, exc)


def emit(sink: FailureSink, name: str, attempt: int, exc: BaseException) -> None:
    """Deliver a failure record. A raising sink is logged, never propagated."""
    try:
        sink(name, attempt, exc)
    except Exception:
        logger.exception(f"[{name}] failure sink raised on attempt {attempt}")


def configure_logging(level: str | int | None = None) -> None:
    """Set the stepretry logger level, defaulting to STEPRETRY_LOG_LEVEL."""
    if level is None:
        from stepretry.foundation.config import get_settings
        level = get_settings().logging.level
    logging.getLogger("stepretry").setLevel(level)
