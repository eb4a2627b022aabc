"""Error types for retried steps.

Every failure surfaced by the runner is an exception wrapping the last
error a step produced. Wrapping never hides the original: ``is_error``
walks the chain so callers can test for a sentinel at any depth.

Example:
    >>> ERR_GONE = LookupError("gone")
    >>> try:
    ...     retrier.chain(Step("fetch", fetch))
    ... except ChainError as e:
    ...     if is_error(e, ERR_GONE):
    ...         ...
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TypeAlias

# Sentinel: an exception instance (identity/equality) or exception class (isinstance)
Sentinel: TypeAlias = BaseException | type[BaseException]


class RetryError(Exception):
    """Base for all errors raised by the retry runner."""

    __slots__ = ("error",)

    def __init__(self, message: str, error: BaseException) -> None:
        self.error = error
        super().__init__(message)


class StepError(RetryError):
    """A single step failed after exhausting attempts or hitting a fatal error.

    Attributes:
        name: Step name
        attempts: Number of times the step was invoked
        error: Last exception raised by the step
    """

    __slots__ = ("name", "attempts")

    def __init__(self, name: str, attempts: int, error: BaseException) -> None:
        self.name, self.attempts = name, attempts
        super().__init__(f"{name}: {error}", error)

    def __reduce__(self) -> tuple[type[StepError], tuple[str, int, BaseException]]:
        return (type(self), (self.name, self.attempts, self.error))


class ChainError(RetryError):
    """A chain stopped at its first failing step."""

    __slots__ = ()

    def __init__(self, error: StepError) -> None:
        super().__init__(f"chain: {error}", error)

    def __reduce__(self) -> tuple[type[ChainError], tuple[BaseException]]:
        return (type(self), (self.error,))


class ParallelError(RetryError):
    """One or more steps of a fan-out failed.

    ``error`` is the first failure in completion order; ``errors`` holds
    every failure in that same order.
    """

    __slots__ = ("errors",)

    def __init__(self, errors: list[StepError] | tuple[StepError, ...]) -> None:
        if not errors:
            raise ValueError("ParallelError requires at least one error")
        self.errors = tuple(errors)
        super().__init__(f"parallel: {self.errors[0]}", self.errors[0])

    def __reduce__(self) -> tuple[type[ParallelError], tuple[tuple[StepError, ...]]]:
        return (type(self), (self.errors,))


def iter_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc and everything it wraps, depth-first, each exception once.

    Follows ``RetryError.error`` and ``__cause__`` links. Implicit
    ``__context__`` is not a wrap: it is set for any exception raised while
    another one is being handled.
    """
    seen: set[int] = set()
    stack = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur
        # Pushed in reverse so .error is visited before __cause__
        for nxt in (cur.__cause__, getattr(cur, "error", None)):
            if isinstance(nxt, BaseException):
                stack.append(nxt)


def _matches(exc: BaseException, target: Sentinel) -> bool:
    if isinstance(target, type):
        return isinstance(exc, target)
    if exc is target:
        return True
    try:
        return bool(exc == target)
    except Exception:  # noqa: BLE001 - foreign __eq__ must not break matching
        return False


def is_error(exc: BaseException | None, target: Sentinel) -> bool:
    """Whether exc is, or wraps, target."""
    if exc is None:
        return False
    return any(_matches(e, target) for e in iter_chain(exc))
