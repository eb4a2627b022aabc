"""Tests for single, chain and parallel step execution."""

from __future__ import annotations

import asyncio
import logging
import threading
import time

import pytest

from stepretry import (
    ChainError,
    Mode,
    ParallelError,
    Retrier,
    Step,
    StepError,
    count,
    fatal,
    is_error,
    mode,
    parallelism,
    sleep,
    verbose,
)

MAX_TRIES = 3

ERR_FAIL = RuntimeError("test fail")
ERR_FATAL = RuntimeError("custom fatal error")


class Failer:
    """Raises ``err`` for the first ``fails`` calls, then succeeds. Thread-safe."""

    def __init__(self, err: Exception, fails: int = 0) -> None:
        self.err, self.fails, self.calls = err, fails, 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            self.calls += 1
            if self.fails > 0:
                self.fails -= 1
                raise self.err
        return "ok"

    async def acall(self) -> str:
        return self()


class Records:
    """Failure sink that keeps every record."""

    def __init__(self) -> None:
        self.items: list[tuple[str, int, BaseException]] = []

    def __call__(self, name: str, attempt: int, exc: BaseException) -> None:
        self.items.append((name, attempt, exc))


@pytest.fixture
def retrier() -> Retrier:
    return Retrier.new(count(MAX_TRIES), sleep(0.001), mode(Mode.LINEAR))


# ─────────────────────────────────────────────────────────────────────────────
# Single
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(("fails", "calls"), [(0, 1), (1, 2), (2, MAX_TRIES)])
def test_single_recovers(retrier: Retrier, fails: int, calls: int) -> None:
    f = Failer(ERR_FAIL, fails)
    assert retrier.single("test-case", f) == "ok"
    assert f.calls == calls


def test_single_exhausts(retrier: Retrier) -> None:
    f = Failer(ERR_FAIL, MAX_TRIES)
    with pytest.raises(StepError) as info:
        retrier.single("test-case", f)
    assert f.calls == MAX_TRIES
    assert info.value.name == "test-case"
    assert info.value.attempts == MAX_TRIES
    assert info.value.error is ERR_FAIL
    assert info.value.__cause__ is ERR_FAIL
    assert is_error(info.value, ERR_FAIL)
    assert str(info.value) == "test-case: test fail"


def test_single_one_attempt_never_sleeps() -> None:
    retrier = Retrier.new(count(1), sleep(5.0))
    f = Failer(ERR_FAIL, 1)
    start = time.monotonic()
    with pytest.raises(StepError):
        retrier.single("once", f)
    assert f.calls == 1
    assert time.monotonic() - start < 1.0


def test_single_no_sleep_after_last_attempt() -> None:
    # Only two delays (0.05 each) may be taken for three attempts
    retrier = Retrier.new(count(3), sleep(0.05))
    start = time.monotonic()
    with pytest.raises(StepError):
        retrier.single("timed", Failer(ERR_FAIL, 3))
    elapsed = time.monotonic() - start
    assert 0.1 <= elapsed < 0.15 + 0.1


def test_single_fatal_stops_immediately() -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), fatal(ERR_FATAL))
    f = Failer(ERR_FATAL, MAX_TRIES)
    with pytest.raises(StepError) as info:
        retrier.single("fatal", f)
    assert f.calls == 1
    assert info.value.attempts == 1
    assert is_error(info.value, ERR_FATAL)


def test_single_fatal_class() -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), fatal(PermissionError))
    f = Failer(PermissionError("denied"), MAX_TRIES)
    with pytest.raises(StepError):
        retrier.single("auth", f)
    assert f.calls == 1


def test_single_inside_handler_retries_transient() -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), fatal(ERR_FATAL))
    f = Failer(ValueError("transient"), MAX_TRIES)
    try:
        raise ERR_FATAL
    except RuntimeError:
        # The handled fatal error becomes each failure's __context__
        with pytest.raises(StepError) as info:
            retrier.single("fallback", f)
    assert f.calls == MAX_TRIES
    assert info.value.attempts == MAX_TRIES


def test_single_base_exception_propagates(retrier: Retrier) -> None:
    calls = 0

    def interrupted() -> None:
        nonlocal calls
        calls += 1
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        retrier.single("interrupt", interrupted)
    assert calls == 1


# ─────────────────────────────────────────────────────────────────────────────
# Failure sink
# ─────────────────────────────────────────────────────────────────────────────


def test_verbose_sink_receives_each_failure() -> None:
    records = Records()
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), verbose(), sink=records)
    with pytest.raises(StepError):
        retrier.single("noisy", Failer(ERR_FAIL, MAX_TRIES))
    assert records.items == [("noisy", 0, ERR_FAIL), ("noisy", 1, ERR_FAIL), ("noisy", 2, ERR_FAIL)]


def test_quiet_policy_emits_nothing() -> None:
    records = Records()
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), sink=records)
    with pytest.raises(StepError):
        retrier.single("quiet", Failer(ERR_FAIL, MAX_TRIES))
    assert records.items == []


def test_fatal_failure_is_not_reported() -> None:
    records = Records()
    retrier = Retrier.new(count(MAX_TRIES), verbose(), fatal(ERR_FATAL), sink=records)
    with pytest.raises(StepError):
        retrier.single("fatal", Failer(ERR_FATAL, 1))
    assert records.items == []


def test_raising_sink_does_not_break_retries() -> None:
    def broken(name: str, attempt: int, exc: BaseException) -> None:
        raise ValueError("sink down")

    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), verbose(), sink=broken)
    f = Failer(ERR_FAIL, 2)
    assert retrier.single("resilient", f) == "ok"
    assert f.calls == 3


class Collector(list):
    """Failure sink that is falsy until it has recorded something."""

    def __call__(self, name: str, attempt: int, exc: BaseException) -> None:
        self.append((name, attempt))


def test_empty_sink_is_kept() -> None:
    collector = Collector()
    retrier = Retrier.new(count(2), sleep(0.001), verbose(), sink=collector)
    with pytest.raises(StepError):
        retrier.single("falsy", Failer(ERR_FAIL, 2))
    assert collector == [("falsy", 0), ("falsy", 1)]


def test_default_sink_logs(caplog: pytest.LogCaptureFixture) -> None:
    retrier = Retrier.new(count(2), sleep(0.001), verbose())
    with caplog.at_level(logging.WARNING, logger="stepretry.retry"):
        with pytest.raises(StepError):
            retrier.single("logged", Failer(ERR_FAIL, 2))
    messages = [r.getMessage() for r in caplog.records]
    assert "step logged:0 err: test fail" in messages
    assert "step logged:1 err: test fail" in messages


# ─────────────────────────────────────────────────────────────────────────────
# Chain
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("fails_a", "calls_a", "fails_b", "calls_b", "failed"),
    [
        (1, 2, 0, 1, False),
        (MAX_TRIES, MAX_TRIES, 0, 0, True),
        (1, 2, MAX_TRIES, MAX_TRIES, True),
    ],
)
def test_chain(fails_a: int, calls_a: int, fails_b: int, calls_b: int, failed: bool) -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), mode(Mode.EXPONENTIAL))
    fa, fb = Failer(ERR_FAIL, fails_a), Failer(ERR_FAIL, fails_b)
    steps = (Step("chain-A", fa), Step("chain-B", fb))

    if failed:
        with pytest.raises(ChainError) as info:
            retrier.chain(*steps)
        assert is_error(info.value, ERR_FAIL)
        assert isinstance(info.value.error, StepError)
    else:
        assert retrier.chain(*steps) is None

    assert fa.calls == calls_a
    assert fb.calls == calls_b


def test_chain_error_names_failing_step(retrier: Retrier) -> None:
    with pytest.raises(ChainError) as info:
        retrier.chain(Step("first", Failer(ERR_FAIL)), Step("second", Failer(ERR_FAIL, MAX_TRIES)))
    assert str(info.value) == "chain: second: test fail"
    assert info.value.error.name == "second"


def test_chain_fatal_skips_rest() -> None:
    retrier = Retrier.new(count(MAX_TRIES), fatal(ERR_FATAL))
    fa, fb = Failer(ERR_FATAL, 1), Failer(ERR_FAIL)
    with pytest.raises(ChainError) as info:
        retrier.chain(Step("A", fa), Step("B", fb))
    assert is_error(info.value, ERR_FATAL)
    assert fa.calls == 1
    assert fb.calls == 0


def test_chain_empty(retrier: Retrier) -> None:
    assert retrier.chain() is None


# ─────────────────────────────────────────────────────────────────────────────
# Parallel
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("fails_a", "calls_a", "fails_b", "calls_b", "failed"),
    [
        (1, 2, 0, 1, False),
        (MAX_TRIES, MAX_TRIES, 0, 1, True),
        (1, 2, MAX_TRIES, MAX_TRIES, True),
    ],
)
def test_parallel(fails_a: int, calls_a: int, fails_b: int, calls_b: int, failed: bool) -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), parallelism(2))
    fa, fb = Failer(ERR_FAIL, fails_a), Failer(ERR_FAIL, fails_b)
    steps = (Step("parallel-A", fa), Step("parallel-B", fb))

    if failed:
        with pytest.raises(ParallelError) as info:
            retrier.parallel(*steps)
        assert is_error(info.value, ERR_FAIL)
    else:
        assert retrier.parallel(*steps) is None

    assert fa.calls == calls_a
    assert fb.calls == calls_b


def test_parallel_siblings_run_to_completion() -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.01), fatal(ERR_FATAL))
    fast, slow = Failer(ERR_FATAL, 1), Failer(ERR_FAIL, MAX_TRIES - 1)
    with pytest.raises(ParallelError) as info:
        retrier.parallel(Step("fast", fast), Step("slow", slow))
    assert fast.calls == 1
    assert slow.calls == MAX_TRIES
    assert info.value.error.name == "fast"
    assert [e.name for e in info.value.errors] == ["fast"]


def test_parallel_first_error_is_earliest_completion() -> None:
    retrier = Retrier.new(count(1))

    def late() -> None:
        time.sleep(0.1)
        raise ERR_FAIL

    with pytest.raises(ParallelError) as info:
        retrier.parallel(Step("late", late), Step("early", Failer(ERR_FATAL, 1)))
    assert info.value.error.name == "early"
    assert [e.name for e in info.value.errors] == ["early", "late"]
    assert info.value.__cause__ is info.value.error
    assert str(info.value) == "parallel: early: custom fatal error"


def test_parallel_respects_limit() -> None:
    retrier = Retrier.new(count(1), parallelism(2))
    lock = threading.Lock()
    running = peak = 0

    def work() -> None:
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.02)
        with lock:
            running -= 1

    retrier.parallel(*(Step(f"w{i}", work) for i in range(6)))
    assert 1 <= peak <= 2


def test_parallel_unlimited_runs_all_at_once() -> None:
    retrier = Retrier.new(count(1))
    barrier = threading.Barrier(4, timeout=2.0)
    # Deadlocks (and times out) unless all four steps run concurrently
    retrier.parallel(*(Step(f"b{i}", barrier.wait) for i in range(4)))


def test_parallel_empty(retrier: Retrier) -> None:
    assert retrier.parallel() is None


def test_retrier_is_shareable_across_threads(retrier: Retrier) -> None:
    failers = [Failer(ERR_FAIL, 1) for _ in range(8)]
    threads = [threading.Thread(target=retrier.single, args=(f"t{i}", f)) for i, f in enumerate(failers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert all(f.calls == 2 for f in failers)


# ─────────────────────────────────────────────────────────────────────────────
# Async
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_asingle_recovers(retrier: Retrier) -> None:
    f = Failer(ERR_FAIL, 2)
    assert await retrier.asingle("async", f.acall) == "ok"
    assert f.calls == 3


@pytest.mark.asyncio
async def test_asingle_fatal() -> None:
    retrier = Retrier.new(count(MAX_TRIES), fatal(ERR_FATAL))
    f = Failer(ERR_FATAL, MAX_TRIES)
    with pytest.raises(StepError) as info:
        await retrier.asingle("async-fatal", f.acall)
    assert f.calls == 1
    assert is_error(info.value, ERR_FATAL)


@pytest.mark.asyncio
async def test_achain_stops_at_first_failure(retrier: Retrier) -> None:
    fa, fb = Failer(ERR_FAIL, MAX_TRIES), Failer(ERR_FAIL)
    with pytest.raises(ChainError):
        await retrier.achain(Step("A", fa.acall), Step("B", fb.acall))
    assert fa.calls == MAX_TRIES
    assert fb.calls == 0
    assert await retrier.achain() is None


@pytest.mark.asyncio
async def test_aparallel_waits_for_all() -> None:
    retrier = Retrier.new(count(MAX_TRIES), sleep(0.001), parallelism(1))
    fa, fb = Failer(ERR_FAIL, MAX_TRIES), Failer(ERR_FAIL, 1)
    with pytest.raises(ParallelError) as info:
        await retrier.aparallel(Step("A", fa.acall), Step("B", fb.acall))
    assert fa.calls == MAX_TRIES
    assert fb.calls == 2
    assert [e.name for e in info.value.errors] == ["A"]
    assert await retrier.aparallel() is None


@pytest.mark.asyncio
async def test_aparallel_success() -> None:
    retrier = Retrier.new(count(2), sleep(0.001))
    fa, fb = Failer(ERR_FAIL, 1), Failer(ERR_FAIL)
    assert await retrier.aparallel(Step("A", fa.acall), Step("B", fb.acall)) is None
    assert (fa.calls, fb.calls) == (2, 1)


@pytest.mark.asyncio
@pytest.mark.parametrize(("limit", "expected"), [(2, 2), (0, 6)])
async def test_aparallel_respects_limit(limit: int, expected: int) -> None:
    retrier = Retrier.new(count(1), parallelism(limit))
    running = peak = 0

    async def work() -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.02)
        running -= 1

    await retrier.aparallel(*(Step(f"w{i}", work) for i in range(6)))
    assert peak == expected


@pytest.mark.asyncio
async def test_asingle_rejects_sync_callable(retrier: Retrier) -> None:
    f = Failer(ERR_FAIL)
    with pytest.raises(TypeError, match="expected an awaitable"):
        await retrier.asingle("sync", f)
    assert f.calls == 1
