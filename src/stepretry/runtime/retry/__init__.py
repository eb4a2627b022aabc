"""Retry policies and step execution.

Provides a validated retry policy, functional options to build it,
four backoff modes, and single/chain/parallel step runners.

Example:
    >>> from stepretry.runtime.retry import Retrier, Step, Mode, count, sleep, mode, fatal
    >>>
    >>> retrier = Retrier.new(count(5), sleep(0.2), mode(Mode.FIBONACCI), fatal(PermissionError))
    >>> retrier.parallel(
    ...     Step("cache", cache.connect),
    ...     Step("queue", queue.connect),
    ... )
"""

from .backoff import (
    Backoff,
    ExponentialBackoff,
    FibonacciBackoff,
    LinearBackoff,
    Mode,
    SimpleBackoff,
    backoff_for,
    fibonacci,
    pow2,
    scale,
)
from .options import Draft, Option, count, fatal, jitter, mode, new, parallelism, sleep, verbose
from .policy import DEFAULT_POLICY, MAX_PAUSE, MIN_COUNT, MIN_DURATION, MIN_PARALLEL, MIN_SLEEP, Policy
from .step import Retrier, Step

__all__ = [
    # Backoff strategies
    "Backoff", "Mode", "SimpleBackoff", "LinearBackoff", "ExponentialBackoff", "FibonacciBackoff",
    "backoff_for", "fibonacci", "pow2", "scale",
    # Policy
    "Policy", "DEFAULT_POLICY", "MAX_PAUSE", "MIN_COUNT", "MIN_SLEEP", "MIN_DURATION", "MIN_PARALLEL",
    # Options
    "Option", "Draft", "new", "count", "sleep", "jitter", "mode", "parallelism", "verbose", "fatal",
    # Execution
    "Retrier", "Step",
]
