"""Single-attempt execution.

run_attempt() invokes the unit of work once under a three-way race:

    (a) the work itself, called as ``work(attempt, attempt_signal)``
    (b) the per-attempt deadline, if the policy sets one
    (c) the operation-wide signal, if the policy carries one

Each attempt gets its own CancelController. Its signal is what the work
sees, so a deadline or an outer cancellation can stop the in-flight call
without the work ever touching the session's signal. The attempt signal is
cancelled on every exit, success included: once run_attempt returns, that
attempt's context is over.

The outcome comes back as a Result instead of an exception so the retry
loop only ever branches on values.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable
from typing import Any, Callable, TypeVar, Union

from retrycase.foundation.errors import Cancelled, DeadlineExceeded, Err, InvalidResult, Ok, Result, WorkError
from retrycase.runtime.concurrency import CancelController, CancelSignal, race

from .policy import RetryPolicy

T = TypeVar("T")

Work = Callable[[int, CancelSignal], Union[T, Result[T, Any], Awaitable[Union[T, Result[T, Any]]]]]


async def _invoke(work: Work[T], attempt: int, signal: CancelSignal) -> object:
    try:
        result = work(attempt, signal)
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError:
        # Reported as a regular failure; the caller's own cancellation is
        # re-raised by race() independently of this task.
        raise Cancelled(f"Attempt {attempt} was cancelled.") from None
    return result


def _format_ms(ms: float) -> str:
    return str(int(ms)) if float(ms).is_integer() else str(ms)


def _reject(future: asyncio.Future[Any], error: Exception) -> None:
    if not future.done():
        future.set_exception(error)


def normalize(result: object, policy: RetryPolicy) -> T:
    """Turn the work's return value into the attempt's value, or raise.

    A Result with a populated error is a propagated failure. An Err whose
    error is falsy (None, 0, "") carries no value, so it yields None. The
    value (bare, Ok payload, or that None) then goes through the
    invalid-result check. The error is inspected first.
    """
    if isinstance(result, Result):
        if result.is_err():
            if error := result.unwrap_err():
                raise error if isinstance(error, Exception) else WorkError(error)
            value = None
        else:
            value = result.unwrap()
    else:
        value = result
    if policy.is_invalid(value):
        raise InvalidResult("Result was considered invalid.", value=value)
    return value  # type: ignore[return-value]


async def run_attempt(work: Work[T], attempt: int, policy: RetryPolicy) -> Result[T, Exception]:
    """Run one attempt and report Ok(value) or Err(failure).

    Failures are Cancelled, DeadlineExceeded, InvalidResult, or whatever the
    work raised. Cancellation of the calling task is not a failure: it
    propagates after cleanup.
    """
    loop = asyncio.get_running_loop()
    controller = CancelController()
    interrupt: asyncio.Future[Any] = loop.create_future()
    timer: asyncio.TimerHandle | None = None
    remove_listener: Callable[[], None] | None = None

    def _on_deadline() -> None:
        controller.cancel("deadline")
        _reject(interrupt, DeadlineExceeded(
            f"Attempt {attempt} timed out after {_format_ms(policy.attempt_timeout_ms)}ms",
            attempt=attempt, timeout_ms=policy.attempt_timeout_ms,
        ))

    def _on_abort() -> None:
        controller.cancel("aborted")
        _reject(interrupt, Cancelled("Operation aborted."))

    try:
        if policy.attempt_timeout_ms is not None:
            timer = loop.call_later(policy.attempt_timeout_ms / 1000, _on_deadline)
        if (outer := policy.signal) is not None:
            if outer.cancelled:
                # never start work whose operation is already over
                _on_abort()
                return Err(interrupt.exception())
            remove_listener = outer.add_listener(_on_abort)

        # interrupt listed first: it wins when both settle in the same tick
        result = await race(interrupt, _invoke(work, attempt, controller.signal))
        return Ok(normalize(result, policy))
    except Exception as exc:
        return Err(exc)
    finally:
        if timer is not None:
            timer.cancel()
        if remove_listener is not None:
            remove_listener()
        controller.cancel()
        if interrupt.done() and not interrupt.cancelled():
            interrupt.exception()  # mark retrieved
