"""Retry sessions for asynchronous units of work.

Bounded attempts, exponential backoff with jitter, a per-attempt deadline,
and two cancellation channels (the whole session, or just the in-flight
attempt). Every failure is kept.

Example:
    >>> from retrycase.runtime.retry import RetryPolicy, retry
    >>>
    >>> async def charge(attempt, signal):
    ...     return await gateway.charge(order_id, cancel=signal)
    >>>
    >>> result = await retry(charge, RetryPolicy(max_attempts=4, jitter="equal"))
    >>> if result.is_err():
    ...     for failure in result.failures:
    ...         print(type(failure).__name__, failure)
"""

from .backoff import Backoff, ExponentialBackoff, Jitter, compute_delay
from .execution import Work, normalize, run_attempt
from .policy import NO_RETRY, RetryPolicy, default_should_retry, validate_policy
from .session import Failed, SessionResult, Succeeded, retry, retry_sync

__all__ = [
    # Backoff
    "Backoff",
    "ExponentialBackoff",
    "Jitter",
    "compute_delay",
    # Policy
    "RetryPolicy",
    "NO_RETRY",
    "default_should_retry",
    "validate_policy",
    # Execution
    "Work",
    "run_attempt",
    "normalize",
    # Sessions
    "retry",
    "retry_sync",
    "SessionResult",
    "Succeeded",
    "Failed",
]
