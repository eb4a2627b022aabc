"""Bounded thread group for blocking fan-out.

Runs blocking callables on a ThreadPoolExecutor with a cap on how many
are in flight, then waits for all of them. The first error in completion
order is reported; nothing is cancelled early.

Use Cases:
    - Retry loops that sleep between attempts (must not share one thread)
    - Blocking I/O against several independent resources

Example:
    >>> with BoundedGroup(limit=4) as group:
    ...     for item in items:
    ...         group.go(functools.partial(process, item))
    ...     failures = group.wait()
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from types import TracebackType

__all__ = ["BoundedGroup"]

logger = logging.getLogger("stepretry.concurrency")


@dataclass(slots=True)
class BoundedGroup:
    """Worker-limited task group.

    ``limit`` caps concurrently running tasks; 0 means one thread per
    submitted task. Tasks are plain callables; an exception they raise is
    collected as that task's error.

    Attributes:
        limit: Max tasks in flight, 0 = unlimited
        thread_name_prefix: Prefix for worker thread names
    """

    limit: int = 0
    thread_name_prefix: str = "stepretry-"
    _pending: list[Callable[[], object]] = field(default_factory=list, repr=False)
    _executor: ThreadPoolExecutor | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError("limit must be >= 0")

    def go(self, fn: Callable[[], object]) -> None:
        """Queue fn to run when wait() is called."""
        self._pending.append(fn)

    def wait(self) -> list[Exception]:
        """Run every queued task to completion.

        Returns:
            Errors in completion order, empty if all tasks succeeded

        Raises:
            BaseException: A non-Exception (e.g. KeyboardInterrupt) raised by a task,
                re-raised once every task has finished
        """
        tasks, self._pending = self._pending, []
        if not tasks:
            return []

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.limit or len(tasks),
                thread_name_prefix=self.thread_name_prefix,
            )
        logger.debug(f"Running {len(tasks)} task(s) with {self.limit or 'unlimited'} in flight")

        errors: list[Exception] = []
        escaped: BaseException | None = None
        outstanding: set[Future[object]] = {self._executor.submit(fn) for fn in tasks}
        while outstanding:
            done, outstanding = wait_futures(outstanding, return_when=FIRST_COMPLETED)
            for fut in done:
                if (exc := fut.exception()) is not None:
                    if isinstance(exc, Exception):
                        errors.append(exc)
                    elif escaped is None:
                        escaped = exc
        if escaped is not None:
            raise escaped
        return errors

    def shutdown(self, wait: bool = True) -> None:
        """Shut down the underlying executor."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self) -> BoundedGroup:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)
