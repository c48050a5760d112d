"""Retry sessions.

retry() drives one independent session: it runs attempts strictly one after
another, consults the retry predicate and the backoff between them, and
returns a SessionResult exactly once. Failures of the work, of the
predicates or of the on_retry hook never escape; they are recorded in
order on the Failed result so callers see every reason an upstream
misbehaved, not only the last one.

Example:
    >>> async def fetch_invoice(attempt: int, signal: CancelSignal) -> dict:
    ...     return await client.get_invoice("inv_123", cancel=signal)
    >>>
    >>> result = await retry(fetch_invoice, max_attempts=5, attempt_timeout_ms=1_000)
    >>> match result:
    ...     case Succeeded(value=invoice, attempts=n):
    ...         print(f"got {invoice['id']} after {n} attempt(s)")
    ...     case Failed(failures=errors):
    ...         print([type(e).__name__ for e in errors])
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from retrycase.foundation.errors import Cancelled, FailureKind, classify_failure
from retrycase.runtime.concurrency import run_sync, sleep
from retrycase.runtime.observability import BoundLogger, get_logger

from .execution import Work, run_attempt
from .policy import RetryPolicy

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Succeeded(Generic[T]):
    """Terminal success: the value of the first successful attempt."""

    value: T
    attempts: int

    @property
    def failures(self) -> None:
        return None

    @property
    def last_failure(self) -> None:
        return None

    @property
    def kinds(self) -> tuple[FailureKind, ...]:
        return ()

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failed:
    """Terminal failure: every recorded failure, in the order it happened.

    ``failures`` is never empty. Its length equals ``attempts`` when the
    session ran out of attempts; a session stopped by a broken predicate, an
    interrupted backoff or a cancellation before an attempt started carries
    one extra entry for that event.
    """

    failures: tuple[Exception, ...]
    attempts: int

    def __post_init__(self) -> None:
        if not self.failures:
            raise ValueError("Failed requires at least one failure")

    @property
    def value(self) -> None:
        return None

    @property
    def last_failure(self) -> Exception:
        return self.failures[-1]

    @property
    def kinds(self) -> tuple[FailureKind, ...]:
        return tuple(classify_failure(e) for e in self.failures)

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raise the last recorded failure."""
        raise self.last_failure

    def unwrap_or(self, default: T) -> T:
        return default


SessionResult = Union[Succeeded[T], Failed]


async def _decide(policy: RetryPolicy, failure: Exception, attempt: int) -> bool:
    decision = policy.should_retry(failure, attempt)
    if inspect.isawaitable(decision):
        decision = await decision
    return bool(decision)


async def _notify(policy: RetryPolicy, log: BoundLogger, attempt: int, failure: Exception, delay: int) -> None:
    if policy.on_retry is None:
        return
    try:
        outcome = policy.on_retry(attempt, failure, delay)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        log.exception("on_retry hook failed", attempt=attempt)


def _describe(error: Exception) -> str:
    try:
        text = str(error)
    except Exception:
        text = "<unprintable>"
    return f"{type(error).__name__}: {text}"


async def retry(
    work: Work[T],
    policy: RetryPolicy | None = None,
    *,
    name: str | None = None,
    **options: Any,
) -> SessionResult[T]:
    """Run ``work`` under a retry policy and return the session's result.

    Args:
        work: Called as ``work(attempt, attempt_signal)``; may be sync or
            async and may return a bare value or a Result (Ok/Err)
        policy: Policy to use; RetryPolicy() when omitted
        name: Label for log records (defaults to the work's qualified name)
        **options: RetryPolicy fields, applied on top of ``policy``

    Returns:
        Succeeded(value, attempts) or Failed(failures, attempts)
    """
    policy = (policy if policy is not None else RetryPolicy()).replace(**options)
    log = get_logger("retrycase.retry", operation=name or getattr(work, "__qualname__", repr(work)))
    signal = policy.signal
    failures: list[Exception] = []

    for index in range(policy.max_attempts):
        attempt = index + 1

        if signal is not None and signal.cancelled:
            failures.append(Cancelled())
            log.warning("retry session cancelled", attempts=index)
            return Failed(tuple(failures), index)

        outcome = await run_attempt(work, attempt, policy)
        if outcome.is_ok():
            if attempt > 1:
                log.info("retry session succeeded", attempts=attempt)
            return Succeeded(outcome.unwrap(), attempt)

        failure = outcome.unwrap_err()
        failures.append(failure)
        log.debug("attempt failed", attempt=attempt, kind=classify_failure(failure).value, error=_describe(failure))

        if attempt == policy.max_attempts:
            break

        try:
            should_retry = await _decide(policy, failure, attempt)
        except Exception as exc:
            failures.append(exc)
            log.warning("retry predicate failed", attempt=attempt, error=_describe(exc))
            return Failed(tuple(failures), attempt)

        if not should_retry:
            log.warning("retry session gave up", attempts=attempt, reason="not retryable", error=_describe(failure))
            return Failed(tuple(failures), attempt)

        delay = policy.get_delay(attempt)
        log.info("retry scheduled", attempt=attempt, max_attempts=policy.max_attempts, delay_ms=delay,
                 kind=classify_failure(failure).value)
        await _notify(policy, log, attempt, failure, delay)

        try:
            await sleep(delay, signal)
        except Cancelled as exc:
            failures.append(exc)
            log.warning("retry session cancelled", attempts=attempt)
            return Failed(tuple(failures), attempt)

    log.warning("retry session exhausted", attempts=policy.max_attempts, error=_describe(failures[-1]))
    return Failed(tuple(failures), policy.max_attempts)


def retry_sync(
    work: Work[T],
    policy: RetryPolicy | None = None,
    *,
    name: str | None = None,
    **options: Any,
) -> SessionResult[T]:
    """Blocking version of retry() for synchronous callers."""
    return run_sync(retry(work, policy, name=name, **options))
