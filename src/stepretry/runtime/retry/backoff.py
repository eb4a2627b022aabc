"""Backoff strategies for retry policies.

Pure delay calculation between attempts:
- SimpleBackoff: sleep + jitter * attempt
- LinearBackoff: sleep * attempt + jitter
- ExponentialBackoff: sleep * 2^attempt + jitter
- FibonacciBackoff: sleep * fib(attempt) + jitter

Multipliers are computed with integer arithmetic so large attempt numbers
don't drift; a product too large for a float saturates to ``math.inf``.
Attempt numbers are 1-based: the delay before the next try is computed
from the number of the try that just failed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable


class Mode(StrEnum):
    """Delay growth function selector."""
    SIMPLE = "simple"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    FIBONACCI = "fibonacci"


def pow2(n: int) -> int:
    """2**n for n >= 0, exact."""
    return 1 << max(n, 0)


def fibonacci(n: int) -> int:
    """n-th Fibonacci number, fib(0)=0, fib(1)=1. Iterative, O(n)."""
    a, b = 0, 1
    for _ in range(max(n, 0)):
        a, b = b, a + b
    return a


def scale(sleep: float, multiplier: int) -> float:
    """sleep * multiplier, saturating to inf instead of overflowing."""
    try:
        return sleep * multiplier
    except OverflowError:
        return math.inf


@runtime_checkable
class Backoff(Protocol):
    """Protocol for backoff delay calculation."""

    def delay(self, attempt: int) -> float:
        """Delay in seconds before the try following ``attempt``."""
        ...


@dataclass(frozen=True, slots=True)
class SimpleBackoff:
    """Constant base delay, jitter grows linearly with attempt.

    Delay = sleep + jitter * attempt
    """

    sleep: float = 0.5
    jitter: float = 0.0

    def delay(self, attempt: int) -> float:
        return self.sleep + self.jitter * attempt


@dataclass(frozen=True, slots=True)
class LinearBackoff:
    """Delay = sleep * attempt + jitter"""

    sleep: float = 0.5
    jitter: float = 0.0

    def delay(self, attempt: int) -> float:
        return self.sleep * attempt + self.jitter


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Doubling delay.

    Delay = sleep * 2^attempt + jitter
    """

    sleep: float = 0.5
    jitter: float = 0.0

    def delay(self, attempt: int) -> float:
        return scale(self.sleep, pow2(attempt)) + self.jitter


@dataclass(frozen=True, slots=True)
class FibonacciBackoff:
    """Delay = sleep * fib(attempt) + jitter

    Grows slower than exponential; fib(1) == fib(2) so the first two
    retries wait the same time.
    """

    sleep: float = 0.5
    jitter: float = 0.0

    def delay(self, attempt: int) -> float:
        return scale(self.sleep, fibonacci(attempt)) + self.jitter


_BY_MODE: dict[Mode, type[SimpleBackoff | LinearBackoff | ExponentialBackoff | FibonacciBackoff]] = {
    Mode.SIMPLE: SimpleBackoff,
    Mode.LINEAR: LinearBackoff,
    Mode.EXPONENTIAL: ExponentialBackoff,
    Mode.FIBONACCI: FibonacciBackoff,
}


def backoff_for(mode: Mode | str, sleep: float, jitter: float) -> Backoff:
    """Build the backoff strategy for a mode."""
    return _BY_MODE[Mode(mode)](sleep=sleep, jitter=jitter)
