"""Retry execution for single steps, chains and parallel fan-out.

All three topologies are built on the single-step loop:

    single    try a step up to ``count`` times, sleeping between attempts
    chain     run steps in order, stop at the first step that fails
    parallel  run steps concurrently (at most ``parallelism`` at a time),
              wait for every one, report the first failure

A step fails by raising an ``Exception``. BaseExceptions that are not
Exceptions (KeyboardInterrupt, SystemExit, CancelledError) are never
caught and propagate unchanged.

Example:
    >>> retrier = Retrier.new(count(3), sleep(0.5), mode(Mode.EXPONENTIAL))
    >>> retrier.chain(
    ...     Step("connect", db.connect),
    ...     Step("migrate", db.migrate),
    ... )
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from stepretry.foundation.errors import ChainError, ParallelError, StepError
from stepretry.runtime.concurrency import BoundedGroup
from stepretry.runtime.observability import FailureSink, LogSink, emit

from .options import new
from .policy import DEFAULT_POLICY, Policy

if TYPE_CHECKING:
    from .options import Option

T = TypeVar("T")

logger = logging.getLogger("stepretry.retry")


@dataclass(frozen=True, slots=True)
class Step(Generic[T]):
    """A named, zero-argument operation to retry.

    ``func`` must be safe to call more than once. For async runs it must
    return an awaitable.
    """

    name: str
    func: Callable[[], T]


class Retrier:
    """Runs steps under a retry policy.

    The policy is read-only, so one Retrier may serve any number of
    concurrent calls.

    Args:
        policy: Retry policy (default: one attempt, no retries)
        sink: Receives intermediate failures when policy.verbose is set
    """

    __slots__ = ("_policy", "_sink")

    def __init__(self, policy: Policy | None = None, *, sink: FailureSink | None = None) -> None:
        self._policy = DEFAULT_POLICY if policy is None else policy
        self._sink: FailureSink = LogSink() if sink is None else sink

    @classmethod
    def new(cls, *opts: Option, sink: FailureSink | None = None) -> Retrier:
        """Build a retrier from policy options."""
        return cls(new(*opts), sink=sink)

    @property
    def policy(self) -> Policy:
        return self._policy

    def _failed(self, name: str, attempt: int, exc: Exception) -> bool:
        """Handle a failed attempt. Returns True if the step may be retried."""
        if self._policy.is_fatal(exc):
            logger.debug(f"[{name}] Fatal error on attempt {attempt + 1}, not retrying: {exc}")
            return False
        if self._policy.verbose:
            emit(self._sink, name, attempt, exc)
        return attempt + 1 < self._policy.count

    # ─────────────────────────────────────────────────────────────────────
    # Blocking execution
    # ─────────────────────────────────────────────────────────────────────

    def single(self, name: str, func: Callable[[], T]) -> T:
        """Call func until it returns, at most ``policy.count`` times.

        Returns:
            Whatever func returned on its successful attempt

        Raises:
            StepError: All attempts failed, or a fatal error was raised.
                Wraps the last exception (also set as ``__cause__``).
        """
        attempt = 0
        while True:
            try:
                result = func()
            except Exception as e:
                if not self._failed(name, attempt, e):
                    raise StepError(name, attempt + 1, e) from e
            else:
                if attempt:
                    logger.debug(f"[{name}] Succeeded on attempt {attempt + 1}/{self._policy.count}")
                return result
            attempt += 1
            time.sleep(self._policy.pause(attempt))

    def chain(self, *steps: Step[object]) -> None:
        """Run steps one after another, stopping at the first failure.

        Raises:
            ChainError: Wrapping the failing step's StepError
        """
        for step in steps:
            try:
                self.single(step.name, step.func)
            except StepError as e:
                raise ChainError(e) from e

    def parallel(self, *steps: Step[object]) -> None:
        """Run steps concurrently on threads and wait for all of them.

        A failing step never cancels its siblings.

        Raises:
            ParallelError: One or more steps failed. ``error`` is the first
                failure in completion order, ``errors`` holds all of them.
        """
        if not steps:
            return
        with BoundedGroup(limit=self._policy.parallelism) as group:
            for step in steps:
                group.go(functools.partial(self.single, step.name, step.func))
            errors = group.wait()
        if errors:
            raise ParallelError(errors) from errors[0]  # type: ignore[arg-type]

    # ─────────────────────────────────────────────────────────────────────
    # Async execution
    # ─────────────────────────────────────────────────────────────────────

    async def asingle(self, name: str, func: Callable[[], Awaitable[T]]) -> T:
        """Async single(): awaits func and sleeps with asyncio.sleep.

        Raises:
            StepError: As for single()
            TypeError: func returned something that is not awaitable. Not
                retried, since every further call would do the same.
        """
        attempt = 0
        while True:
            try:
                pending = func()
                awaitable = inspect.isawaitable(pending)
                if awaitable:
                    result = await pending
            except Exception as e:
                if not self._failed(name, attempt, e):
                    raise StepError(name, attempt + 1, e) from e
            else:
                if not awaitable:
                    raise TypeError(f"step {name!r} returned {type(pending).__name__}, expected an awaitable")
                if attempt:
                    logger.debug(f"[{name}] Succeeded on attempt {attempt + 1}/{self._policy.count}")
                return result
            attempt += 1
            await asyncio.sleep(self._policy.pause(attempt))

    async def achain(self, *steps: Step[Awaitable[object]]) -> None:
        """Async chain()."""
        for step in steps:
            try:
                await self.asingle(step.name, step.func)
            except StepError as e:
                raise ChainError(e) from e

    async def aparallel(self, *steps: Step[Awaitable[object]]) -> None:
        """Async parallel(): one task per step, gated by a semaphore."""
        if not steps:
            return
        sem = asyncio.Semaphore(self._policy.parallelism) if self._policy.parallelism else None

        async def run(step: Step[Awaitable[object]]) -> object:
            if sem is None:
                return await self.asingle(step.name, step.func)
            async with sem:
                return await self.asingle(step.name, step.func)

        completed: list[asyncio.Task[object]] = []
        tasks = [asyncio.ensure_future(run(s)) for s in steps]
        for t in tasks:
            t.add_done_callback(completed.append)
        await asyncio.gather(*tasks, return_exceptions=True)

        errors: list[StepError] = []
        for t in completed:
            if t.cancelled():
                continue
            exc = t.exception()
            if isinstance(exc, StepError):
                errors.append(exc)
            elif exc is not None:
                raise exc
        if errors:
            raise ParallelError(errors) from errors[0]
