"""Functional options for building a Policy.

Each option sets exactly one field on a mutable draft; ``new`` applies
options in order to an empty draft and validates the result.

Example:
    >>> policy = new(count(3), sleep(0.2), mode(Mode.FIBONACCI), fatal(ERR_AUTH))
    >>> policy.count
    3
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, TypeAlias

from stepretry.foundation.errors import Sentinel

from .backoff import Mode
from .policy import Policy


@dataclass(slots=True)
class Draft:
    """Unvalidated policy fields. Zero values clamp to the policy defaults."""

    count: int = 0
    sleep: float | timedelta = 0.0
    jitter: float | timedelta = 0.0
    mode: Mode | str = Mode.SIMPLE
    parallelism: int = 0
    verbose: bool = False
    fatal: list[Sentinel] = field(default_factory=list)

    @classmethod
    def from_policy(cls, policy: Policy) -> Draft:
        return cls(
            count=policy.count, sleep=policy.sleep, jitter=policy.jitter, mode=policy.mode,
            parallelism=policy.parallelism, verbose=policy.verbose, fatal=list(policy.fatal),
        )

    def apply(self, opts: Iterable[Option]) -> Draft:
        for o in opts:
            o(self)
        return self

    def build(self) -> Policy:
        return Policy(
            count=self.count, sleep=self.sleep, jitter=self.jitter, mode=self.mode,
            parallelism=self.parallelism, verbose=self.verbose, fatal=tuple(self.fatal),
        )


Option: TypeAlias = Callable[[Draft], None]


def new(*opts: Option) -> Policy:
    """Create a validated Policy from options.

    With no options: one attempt, MIN_SLEEP base delay, no jitter,
    simple mode, unlimited parallelism.
    """
    return Draft().apply(opts).build()


def count(n: int) -> Option:
    """Set total number of attempts per step."""
    def _opt(d: Draft) -> None:
        d.count = n
    return _opt


def sleep(s: float | timedelta) -> Option:
    """Set base delay between attempts (seconds or timedelta)."""
    def _opt(d: Draft) -> None:
        d.sleep = s
    return _opt


def jitter(s: float | timedelta) -> Option:
    """Set jitter. In simple mode every retry waits sleep + jitter * attempt."""
    def _opt(d: Draft) -> None:
        d.jitter = s
    return _opt


def mode(m: Mode | str) -> Option:
    """Set backoff mode."""
    def _opt(d: Draft) -> None:
        d.mode = m
    return _opt


def parallelism(n: int) -> Option:
    """Set max parallel steps, 0 means no limit."""
    def _opt(d: Draft) -> None:
        d.parallelism = n
    return _opt


def verbose(v: bool = True) -> Option:
    """Report intermediate failures to the failure sink."""
    def _opt(d: Draft) -> None:
        d.verbose = v
    return _opt


def fatal(*errs: Sentinel) -> Option:
    """Register fatal sentinels. Additive across repeated calls."""
    def _opt(d: Draft) -> None:
        d.fatal.extend(errs)
    return _opt
