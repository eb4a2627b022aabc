"""Stepretry - retry orchestration for fallible steps.

Re-invokes an operation under a policy (attempt count, backoff mode,
fatal-error short-circuit) until it succeeds, runs out of attempts, or
raises a fatal error. Steps run alone, as a sequential chain, or fanned
out across threads with a parallelism cap.

Quick Start:
    >>> from stepretry import Retrier, Step, Mode, count, sleep, mode, fatal
    >>>
    >>> ERR_AUTH = PermissionError("bad credentials")
    >>> retrier = Retrier.new(count(3), sleep(0.5), mode(Mode.EXPONENTIAL), fatal(ERR_AUTH))
    >>>
    >>> # One step
    >>> conn = retrier.single("connect", db.connect)
    >>>
    >>> # In order, stop at first failure
    >>> retrier.chain(Step("connect", db.connect), Step("migrate", db.migrate))
    >>>
    >>> # Concurrently, wait for all
    >>> retrier.parallel(Step("cache", cache.ping), Step("queue", queue.ping))

Error Handling:
    >>> from stepretry import ChainError, is_error
    >>> try:
    ...     retrier.chain(...)
    ... except ChainError as e:
    ...     if is_error(e, ERR_AUTH):
    ...         ...

Configuration from environment:
    >>> # STEPRETRY_RETRY_COUNT=5 STEPRETRY_RETRY_MODE=fibonacci
    >>> retrier = Retrier(Policy.from_settings())
"""

from .foundation.config import RetrySettings, StepretrySettings, clear_settings_cache, get_settings
from .foundation.errors import ChainError, ParallelError, RetryError, StepError, is_error
from .runtime import (
    BoundedGroup,
    FailureSink,
    LogSink,
    Mode,
    Option,
    Policy,
    Retrier,
    Step,
    configure_logging,
    count,
    fatal,
    jitter,
    mode,
    new,
    parallelism,
    sleep,
    verbose,
)

__version__ = "0.1.0"

__all__ = [
    # Execution
    "Retrier",
    "Step",
    # Policy
    "Policy",
    "Mode",
    "Option",
    "new",
    "count",
    "sleep",
    "jitter",
    "mode",
    "parallelism",
    "verbose",
    "fatal",
    # Errors
    "RetryError",
    "StepError",
    "ChainError",
    "ParallelError",
    "is_error",
    # Config
    "StepretrySettings",
    "RetrySettings",
    "get_settings",
    "clear_settings_cache",
    # Runtime
    "BoundedGroup",
    "FailureSink",
    "LogSink",
    "configure_logging",
]
