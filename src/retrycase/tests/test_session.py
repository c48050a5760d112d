"""Tests for retry sessions.

Validates:
- Attempt accounting and the ordered failure list
- Backoff waits between attempts
- Deadlines and both cancellation paths
- Retry predicate, invalid-result predicate and on_retry hook behaviour
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterator

import pytest

from retrycase import (
    NO_RETRY,
    CancelController,
    Cancelled,
    CancelSignal,
    DeadlineExceeded,
    Err,
    Failed,
    FailureKind,
    InvalidResult,
    Ok,
    RetryPolicy,
    Succeeded,
    retry,
    retry_sync,
)
from retrycase.foundation.testing import FlakyWork, SlowWork, SoftFailureWork, StatusCodeWork, StatusError
from retrycase.runtime.observability import CaptureRenderer, configure_logging
from retrycase.runtime.retry import session as session_module


@pytest.fixture
def waits(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[float]]:
    """Replace the backoff delay with an instant one that records each wait."""
    recorded: list[float] = []

    async def instant_sleep(delay_ms: float, signal: CancelSignal | None = None) -> None:
        recorded.append(delay_ms)

    monkeypatch.setattr(session_module, "sleep", instant_sleep)
    yield recorded


@pytest.fixture
def capture() -> CaptureRenderer:
    renderer = CaptureRenderer()
    configure_logging(renderer=renderer, level="DEBUG")
    return renderer


# ═════════════════════════════════════════════════════════════════════════════
# Concrete Scenarios
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_two_server_errors_then_success(waits: list[float]) -> None:
    work = FlakyWork(fail_count=2, status_code=503, value={"id": 1})

    result = await retry(work, max_attempts=3, base_delay_ms=100, jitter="none")

    assert isinstance(result, Succeeded)
    assert result.value == {"id": 1}
    assert result.attempts == 3
    assert result.failures is None
    assert waits == [100, 200]
    assert [i.attempt for i in work.invocations] == [1, 2, 3]


@pytest.mark.asyncio
async def test_client_error_is_not_retried(waits: list[float]) -> None:
    work = StatusCodeWork(codes=[404, 200])

    result = await retry(work, max_attempts=5)

    assert isinstance(result, Failed)
    assert result.attempts == 1
    assert len(result.failures) == 1
    assert result.last_failure.status_code == 404
    assert result.kinds == (FailureKind.PROPAGATED,)
    assert work.call_count == 1
    assert waits == []


@pytest.mark.asyncio
async def test_mixed_status_codes(waits: list[float]) -> None:
    work = StatusCodeWork(codes=[500, 502, 503])

    result = await retry(work, max_attempts=5, base_delay_ms=10, jitter="none")

    assert result.is_ok()
    assert result.attempts == 4
    assert result.unwrap() == {"status": 200, "data": "Success"}
    assert waits == [10, 20, 40]


# ═════════════════════════════════════════════════════════════════════════════
# Attempt Accounting
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("max_attempts", [1, 2, 4])
async def test_never_more_than_max_attempts(waits: list[float], max_attempts: int) -> None:
    work = FlakyWork(fail_count=100)

    result = await retry(work, max_attempts=max_attempts)

    assert isinstance(result, Failed)
    assert work.call_count == max_attempts
    assert result.attempts == max_attempts
    assert len(result.failures) == max_attempts
    assert all(isinstance(f, StatusError) for f in result.failures)
    assert len(waits) == max_attempts - 1


@pytest.mark.asyncio
async def test_failures_are_recorded_in_order(waits: list[float]) -> None:
    work = FlakyWork(fail_count=3)
    result = await retry(work, max_attempts=3)

    assert [str(f) for f in result.failures] == [f"API failed (attempt {n})" for n in (1, 2, 3)]
    with pytest.raises(StatusError, match="attempt 3"):
        result.unwrap()
    assert result.unwrap_or("fallback") == "fallback"
    assert result.value is None


@pytest.mark.asyncio
async def test_first_success_short_circuits(waits: list[float]) -> None:
    work = FlakyWork(fail_count=1)

    result = await retry(work, max_attempts=10)

    assert result.attempts == 2
    assert work.call_count == 2
    assert len(waits) == 1


@pytest.mark.asyncio
async def test_each_attempt_gets_its_own_cancelled_signal(waits: list[float]) -> None:
    work = FlakyWork(fail_count=2)
    await retry(work, max_attempts=3)

    signals = work.signals
    assert len({id(s) for s in signals}) == 3
    assert all(s.cancelled for s in signals)


def test_failed_requires_failures() -> None:
    with pytest.raises(ValueError):
        Failed((), 1)


# ═════════════════════════════════════════════════════════════════════════════
# Deadlines and Cancellation
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_deadline_bounds_each_attempt() -> None:
    work = SlowWork(delay_ms=10_000)
    start = time.monotonic()

    result = await retry(work, max_attempts=3, attempt_timeout_ms=50, base_delay_ms=0)

    elapsed = time.monotonic() - start
    assert isinstance(result, Failed)
    assert result.attempts == 3
    assert result.kinds == (FailureKind.DEADLINE_EXCEEDED,) * 3
    assert [f.attempt for f in result.failures] == [1, 2, 3]
    assert elapsed < 2.0
    assert work.observed_cancellation == 3


@pytest.mark.asyncio
async def test_cancel_during_backoff() -> None:
    controller = CancelController()
    work = FlakyWork(fail_count=10)
    asyncio.get_running_loop().call_later(0.05, controller.cancel)
    start = time.monotonic()

    result = await retry(work, signal=controller.signal, max_attempts=5, base_delay_ms=10_000, jitter="none")

    assert time.monotonic() - start < 1.0
    assert isinstance(result, Failed)
    assert result.attempts == 1
    assert result.kinds == (FailureKind.PROPAGATED, FailureKind.CANCELLED)
    assert str(result.last_failure) == "Delay aborted."
    assert work.call_count == 1
    assert controller.signal.listener_count == 0


@pytest.mark.asyncio
async def test_cancel_during_attempt() -> None:
    controller = CancelController()
    work = SlowWork(delay_ms=10_000)
    asyncio.get_running_loop().call_later(0.02, controller.cancel)
    start = time.monotonic()

    result = await retry(work, signal=controller.signal, max_attempts=5, base_delay_ms=0)

    assert time.monotonic() - start < 1.0
    assert result.attempts == 1
    assert result.kinds == (FailureKind.CANCELLED,)
    assert str(result.last_failure) == "Operation aborted."
    assert work.observed_cancellation == 1
    assert controller.signal.listener_count == 0


@pytest.mark.asyncio
async def test_cancelled_before_start() -> None:
    controller = CancelController()
    controller.cancel()
    work = FlakyWork(fail_count=0)

    result = await retry(work, signal=controller.signal)

    assert isinstance(result, Failed)
    assert result.attempts == 0
    assert result.kinds == (FailureKind.CANCELLED,)
    assert work.call_count == 0


@pytest.mark.asyncio
async def test_retried_cancellation_stops_at_next_attempt(waits: list[float]) -> None:
    """A predicate that retries Cancelled still stops before the next attempt."""
    controller = CancelController()
    work = SlowWork(delay_ms=10_000)
    asyncio.get_running_loop().call_later(0.02, controller.cancel)

    result = await retry(work, signal=controller.signal, should_retry=lambda e, n: True, max_attempts=5)

    assert result.attempts == 1
    assert result.kinds == (FailureKind.CANCELLED, FailureKind.CANCELLED)
    assert work.call_count == 1


@pytest.mark.asyncio
async def test_caller_task_cancellation_propagates() -> None:
    controller = CancelController()
    task = asyncio.create_task(retry(SlowWork(delay_ms=10_000), signal=controller.signal))
    await asyncio.sleep(0.01)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert controller.signal.listener_count == 0


# ═════════════════════════════════════════════════════════════════════════════
# Predicates and Hooks
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_predicate_false_stops_without_waiting(waits: list[float]) -> None:
    work = FlakyWork(fail_count=5, status_code=503)

    result = await retry(work, should_retry=lambda error, attempt: False)

    assert result.attempts == 1
    assert len(result.failures) == 1
    assert waits == []


@pytest.mark.asyncio
async def test_predicate_receives_failure_and_attempt(waits: list[float]) -> None:
    seen: list[tuple[str, int]] = []

    def should_retry(error: Exception, attempt: int) -> bool:
        seen.append((type(error).__name__, attempt))
        return True

    await retry(FlakyWork(fail_count=2, status_code=418), should_retry=should_retry, max_attempts=3)
    assert seen == [("StatusError", 1), ("StatusError", 2)]


@pytest.mark.asyncio
async def test_async_predicate(waits: list[float]) -> None:
    async def should_retry(error: Exception, attempt: int) -> bool:
        await asyncio.sleep(0)
        return attempt < 2

    result = await retry(FlakyWork(fail_count=5), should_retry=should_retry, max_attempts=5)
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_raising_predicate_is_recorded(waits: list[float], capture: CaptureRenderer) -> None:
    def should_retry(error: Exception, attempt: int) -> bool:
        raise LookupError("predicate bug")

    result = await retry(FlakyWork(fail_count=5), should_retry=should_retry)

    assert result.attempts == 1
    assert [type(f) for f in result.failures] == [StatusError, LookupError]
    assert "retry predicate failed" in capture.events()


@pytest.mark.asyncio
async def test_on_retry_called_before_each_wait(waits: list[float]) -> None:
    calls: list[tuple[int, str, int, int]] = []

    def on_retry(attempt: int, failure: Exception, delay_ms: int) -> None:
        calls.append((attempt, str(failure), delay_ms, len(waits)))

    await retry(FlakyWork(fail_count=2), on_retry=on_retry, base_delay_ms=100, jitter="none")

    assert calls == [(1, "API failed (attempt 1)", 100, 0), (2, "API failed (attempt 2)", 200, 1)]


@pytest.mark.asyncio
async def test_on_retry_errors_are_logged_and_ignored(waits: list[float], capture: CaptureRenderer) -> None:
    def on_retry(attempt: int, failure: Exception, delay_ms: int) -> None:
        raise RuntimeError("metrics backend down")

    result = await retry(FlakyWork(fail_count=1), on_retry=on_retry)

    assert result.is_ok()
    assert result.attempts == 2
    entry = next(e for e in capture.entries if e.event == "on_retry hook failed")
    assert entry.level == "error"
    assert "metrics backend down" in entry.context["exc_info"]


@pytest.mark.asyncio
async def test_none_is_retried_when_invalid_result_is_true(waits: list[float]) -> None:
    work = SoftFailureWork(fail_count=1)

    result = await retry(work, invalid_result=True)

    assert result.attempts == 2
    assert result.value == {"user_id": 123, "name": "John Doe"}


@pytest.mark.asyncio
async def test_none_is_accepted_without_invalid_result(waits: list[float]) -> None:
    result = await retry(SoftFailureWork(fail_count=1))
    assert result == Succeeded(None, 1)


@pytest.mark.asyncio
async def test_custom_invalid_predicate_only_rejects_empty_lists(waits: list[float]) -> None:
    def empty_list(value: object) -> bool:
        return isinstance(value, list) and not value

    empty = await retry(SoftFailureWork(fail_count=2, empty=[], value=[1]), invalid_result=empty_list)
    assert empty.attempts == 3
    assert empty.value == [1]

    null = await retry(SoftFailureWork(fail_count=1, empty=None), invalid_result=empty_list)
    assert null == Succeeded(None, 1)


@pytest.mark.asyncio
async def test_invalid_results_exhaust_attempts(waits: list[float]) -> None:
    result = await retry(SoftFailureWork(fail_count=10), invalid_result=True, max_attempts=3)

    assert result.kinds == (FailureKind.INVALID_RESULT,) * 3
    assert all(isinstance(f, InvalidResult) and f.value is None for f in result.failures)


@pytest.mark.asyncio
async def test_explicit_results(waits: list[float]) -> None:
    outcomes = iter([Err(StatusError(503)), Err(None), Ok("value")])

    async def work(attempt: int, signal: CancelSignal):
        return next(outcomes)

    result = await retry(work, invalid_result=True, max_attempts=3)

    assert result.attempts == 3
    assert result.value == "value"


@pytest.mark.asyncio
async def test_err_payload_that_is_not_an_exception(waits: list[float]) -> None:
    result = await retry(lambda a, s: Err({"status": 502}), max_attempts=2)

    assert result.attempts == 2
    assert result.kinds == (FailureKind.PROPAGATED,) * 2
    assert result.last_failure.payload == {"status": 502}


# ═════════════════════════════════════════════════════════════════════════════
# Policy Plumbing
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_options_override_given_policy(waits: list[float]) -> None:
    work = FlakyWork(fail_count=1)

    assert (await retry(work, NO_RETRY)).is_err()
    assert (await retry(FlakyWork(fail_count=1), NO_RETRY, max_attempts=2)).is_ok()
    assert NO_RETRY.max_attempts == 1


@pytest.mark.asyncio
async def test_policy_object_is_used(waits: list[float]) -> None:
    policy = RetryPolicy(max_attempts=2, base_delay_ms=7, jitter="none")
    result = await retry(FlakyWork(fail_count=5), policy)
    assert result.attempts == 2
    assert waits == [7]


@pytest.mark.asyncio
async def test_deadline_failures_are_retried_by_default(waits: list[float]) -> None:
    calls = 0

    async def work(attempt: int, signal: CancelSignal) -> str:
        nonlocal calls
        calls += 1
        if attempt == 1:
            await asyncio.sleep(10)
        return "second time lucky"

    result = await retry(work, attempt_timeout_ms=20)

    assert result == Succeeded("second time lucky", 2)
    assert calls == 2


@pytest.mark.asyncio
async def test_session_log_events(waits: list[float], capture: CaptureRenderer) -> None:
    await retry(FlakyWork(fail_count=1), name="fetch-profile")

    assert capture.events() == ["attempt failed", "retry scheduled", "retry session succeeded"]
    scheduled = capture.entries[1]
    assert scheduled.context["operation"] == "fetch-profile"
    assert scheduled.context["attempt"] == 1
    assert scheduled.context["kind"] == "PROPAGATED"


@pytest.mark.asyncio
async def test_exhausted_session_logs_warning(waits: list[float], capture: CaptureRenderer) -> None:
    await retry(FlakyWork(fail_count=5), max_attempts=2)
    assert capture.events()[-1] == "retry session exhausted"
    assert capture.entries[-1].level == "warning"


# ═════════════════════════════════════════════════════════════════════════════
# Sync Entry Point
# ═════════════════════════════════════════════════════════════════════════════


def test_retry_sync_from_plain_code(waits: list[float]) -> None:
    result = retry_sync(FlakyWork(fail_count=1), max_attempts=2)
    assert result.is_ok()
    assert result.attempts == 2


def test_retry_sync_matches_retry(waits: list[float]) -> None:
    sync_result = retry_sync(StatusCodeWork(codes=[404]))
    async_result = asyncio.run(retry(StatusCodeWork(codes=[404])))
    assert type(sync_result) is type(async_result)
    assert sync_result.attempts == async_result.attempts
    assert type(sync_result.last_failure) is type(async_result.last_failure)


@pytest.mark.asyncio
async def test_retry_sync_inside_running_loop() -> None:
    result = retry_sync(lambda a, s: "blocking caller", max_attempts=1)
    assert result == Succeeded("blocking caller", 1)


@pytest.mark.asyncio
async def test_deadline_exceeded_message() -> None:
    result = await retry(SlowWork(delay_ms=1_000), max_attempts=1, attempt_timeout_ms=10)
    failure = result.last_failure
    assert isinstance(failure, DeadlineExceeded)
    assert str(failure) == "Attempt 1 timed out after 10ms"
    assert not isinstance(failure, Cancelled)


# ═════════════════════════════════════════════════════════════════════════════
# Hook and Logging Robustness
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_async_on_retry_hook_is_awaited(waits: list[float]) -> None:
    seen: list[tuple[int, int]] = []

    async def on_retry(attempt: int, failure: Exception, delay_ms: int) -> None:
        await asyncio.sleep(0)
        seen.append((attempt, len(waits)))

    result = await retry(FlakyWork(fail_count=5), on_retry=on_retry, should_retry=lambda e, n: True, max_attempts=3)

    assert result.attempts == 3
    assert seen == [(1, 0), (2, 1)]


@pytest.mark.asyncio
async def test_failing_async_on_retry_hook_is_ignored(waits: list[float], capture: CaptureRenderer) -> None:
    async def on_retry(attempt: int, failure: Exception, delay_ms: int) -> None:
        raise RuntimeError("async hook down")

    result = await retry(FlakyWork(fail_count=1), on_retry=on_retry)

    assert result.is_ok()
    assert "on_retry hook failed" in capture.events()


class _UnprintableError(Exception):
    def __str__(self) -> str:
        raise ValueError("no str")


@pytest.mark.asyncio
@pytest.mark.parametrize("level", ["DEBUG", "WARNING"])
async def test_unprintable_failure_does_not_escape(waits: list[float], level: str) -> None:
    capture = CaptureRenderer()
    configure_logging(renderer=capture, level=level)

    def work(attempt: int, signal: CancelSignal) -> None:
        raise _UnprintableError()

    result = await retry(work, max_attempts=2, should_retry=lambda e, n: True)

    assert isinstance(result, Failed)
    assert result.attempts == 2
    assert all(isinstance(f, _UnprintableError) for f in result.failures)
    assert capture.entries[-1].context["error"] == "_UnprintableError: <unprintable>"


@pytest.mark.asyncio
async def test_slow_cleanup_does_not_stretch_deadlines() -> None:
    cleanups = 0

    async def work(attempt: int, signal: CancelSignal) -> str:
        nonlocal cleanups
        try:
            await asyncio.sleep(10)
        finally:
            await asyncio.sleep(1.0)
            cleanups += 1
        return "never"

    start = time.monotonic()
    result = await retry(work, max_attempts=3, attempt_timeout_ms=50, base_delay_ms=0)

    assert time.monotonic() - start < 1.0
    assert result.kinds == (FailureKind.DEADLINE_EXCEEDED,) * 3
    await asyncio.sleep(1.5)
    assert cleanups == 3
