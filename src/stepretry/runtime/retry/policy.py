"""Retry policy configuration.

A Policy bundles attempt count, base delay, jitter, backoff mode,
parallelism cap, verbosity and fatal-error sentinels. It is frozen after
construction and safe to share between threads and concurrent runs.

Invalid numeric input is clamped to the nearest safe value rather than
rejected, so construction never fails on out-of-range numbers:

    count < 1        -> 1
    sleep <= 0       -> MIN_SLEEP
    jitter < 0       -> 0
    parallelism < 0  -> 0
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from stepretry.foundation.errors import Sentinel, is_error

from .backoff import Backoff, Mode, backoff_for

if TYPE_CHECKING:
    from stepretry.foundation.config import RetrySettings

    from .options import Option


logger = logging.getLogger("stepretry.retry")

MIN_COUNT = 1
MIN_PARALLEL = 0
MIN_SLEEP = 0.5
MIN_DURATION = 0.0
# Longest single wait the runner will block for; delay() itself is uncapped
MAX_PAUSE = 86400.0


def _seconds(v: object) -> object:
    return v.total_seconds() if isinstance(v, timedelta) else v


class Policy(BaseModel):
    """Validated retry policy.

    Attributes:
        count: Total attempts per step, including the first
        sleep: Base delay in seconds
        jitter: Per-attempt jitter in seconds (meaning depends on mode)
        mode: Delay growth function
        parallelism: Max steps in flight for fan-out, 0 = unlimited
        verbose: Report intermediate failures to the failure sink
        fatal: Sentinels that stop retrying a step immediately

    Example:
        >>> p = Policy(count=3, sleep=0.1, mode=Mode.EXPONENTIAL)
        >>> p.delay(2)
        0.4
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,  # exception instances in `fatal`
        validate_default=True,
        extra="forbid",
        revalidate_instances="never",
    )

    count: int = MIN_COUNT
    sleep: float = MIN_SLEEP
    jitter: float = MIN_DURATION
    mode: Mode = Mode.SIMPLE
    parallelism: int = MIN_PARALLEL
    verbose: bool = False
    fatal: tuple[Sentinel, ...] = Field(default=(), repr=False)

    @field_validator("sleep", "jitter", mode="before")
    @classmethod
    def _from_timedelta(cls, v: object) -> object:
        """Accept datetime.timedelta for durations."""
        return _seconds(v)

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("fatal", mode="before")
    @classmethod
    def _normalize_fatal(cls, v: object) -> object:
        """Accept a single sentinel or any iterable of them."""
        if v is None:
            return ()
        if isinstance(v, (BaseException, type)):
            return (v,)
        return tuple(v)  # type: ignore[arg-type]

    @field_validator("count")
    @classmethod
    def _clamp_count(cls, v: int) -> int:
        return max(v, MIN_COUNT)

    @field_validator("sleep")
    @classmethod
    def _clamp_sleep(cls, v: float) -> float:
        return v if v > MIN_DURATION else MIN_SLEEP

    @field_validator("jitter")
    @classmethod
    def _clamp_jitter(cls, v: float) -> float:
        return max(v, MIN_DURATION)

    @field_validator("parallelism")
    @classmethod
    def _clamp_parallelism(cls, v: int) -> int:
        return max(v, MIN_PARALLEL)

    @field_serializer("fatal")
    def _serialize_fatal(self, v: tuple[Sentinel, ...]) -> list[str]:
        return [s.__name__ if isinstance(s, type) else repr(s) for s in v]

    @property
    def backoff(self) -> Backoff:
        """Backoff strategy selected by mode."""
        return backoff_for(self.mode, self.sleep, self.jitter)

    def delay(self, attempt: int) -> float:
        """Seconds to wait after 1-based try number ``attempt`` failed."""
        return self.backoff.delay(attempt)

    def pause(self, attempt: int) -> float:
        """delay(attempt) capped at MAX_PAUSE, the value the runner sleeps for."""
        return min(self.delay(attempt), MAX_PAUSE)

    def is_fatal(self, exc: BaseException) -> bool:
        """Whether exc is, or wraps, a registered fatal sentinel."""
        return any(is_error(exc, s) for s in self.fatal)

    def replace(self, *opts: Option) -> Policy:
        """Derive a new policy with further options applied."""
        from .options import Draft
        return Draft.from_policy(self).apply(opts).build()

    @classmethod
    def from_settings(cls, settings: RetrySettings | None = None) -> Policy:
        """Build a policy from environment-backed settings."""
        if settings is None:
            from stepretry.foundation.config import get_settings
            settings = get_settings().retry
        policy = cls(**settings.model_dump())
        logger.debug(f"Loaded retry policy from settings: {policy!r}")
        return policy

    def __hash__(self) -> int:
        return hash((self.count, self.sleep, self.jitter, self.mode, self.parallelism, self.verbose, self.fatal))


DEFAULT_POLICY = Policy()
