"""Runtime - step execution, concurrency and failure reporting.

Contains: retry, concurrency, observability.
"""

from .concurrency import BoundedGroup
from .observability import FailureSink, LogSink, configure_logging
from .retry import (
    Mode,
    Option,
    Policy,
    Retrier,
    Step,
    count,
    fatal,
    jitter,
    mode,
    new,
    parallelism,
    sleep,
    verbose,
)

__all__ = [
    # Retry
    "Policy", "Mode", "Option", "Retrier", "Step",
    "new", "count", "sleep", "jitter", "mode", "parallelism", "verbose", "fatal",
    # Concurrency
    "BoundedGroup",
    # Observability
    "FailureSink", "LogSink", "configure_logging",
]
