"""Retrycase - Retry orchestration for asynchronous units of work.

Runs a unit of work that may fail, hang, or return a soft-failure value
under a policy that bounds attempts, backs off exponentially with jitter,
enforces a per-attempt deadline, and honours two cancellation channels:
one for the whole session and one for the in-flight attempt. Every failure
along the way is returned to the caller, in order.

Quick Start:
    >>> from retrycase import retry
    >>>
    >>> async def fetch_user(attempt, signal):
    ...     return await api.get_user(42, cancel=signal)
    >>>
    >>> result = await retry(fetch_user, max_attempts=5, attempt_timeout_ms=1_000)
    >>> result.is_ok(), result.attempts
    (True, 2)

Soft failures:
    >>> result = await retry(list_orders, invalid_result=lambda rows: rows == [])

Explicit errors without raising:
    >>> from retrycase import Err, Ok
    >>> async def lookup(attempt, signal):
    ...     payload = await cache.get("k")
    ...     return Ok(payload) if payload else Err(StatusError(503))

Cancelling the whole session:
    >>> controller = CancelController()
    >>> task = asyncio.create_task(retry(fetch_user, signal=controller.signal))
    >>> controller.cancel()
    >>> (await task).kinds[-1]
    <FailureKind.CANCELLED: 'CANCELLED'>
"""

from __future__ import annotations

__version__ = "0.1.0"

# Errors
from .foundation.errors import (
    Cancelled,
    DeadlineExceeded,
    Err,
    FailureKind,
    InvalidResult,
    Ok,
    Result,
    RetryError,
    WorkError,
    classify_failure,
    get_status_code,
)

# Config
from .foundation.config import RetrycaseSettings, clear_settings_cache, get_settings

# Concurrency
from .runtime.concurrency import CancelController, CancelSignal, run_sync, sleep

# Retry
from .runtime.retry import (
    NO_RETRY,
    Backoff,
    ExponentialBackoff,
    Failed,
    Jitter,
    RetryPolicy,
    SessionResult,
    Succeeded,
    compute_delay,
    default_should_retry,
    retry,
    retry_sync,
    run_attempt,
)

# Observability
from .runtime.observability import configure_logging, get_logger, log_context

__all__ = [
    "__version__",
    # Errors
    "FailureKind", "RetryError", "Cancelled", "DeadlineExceeded", "InvalidResult", "WorkError",
    "classify_failure", "get_status_code",
    "Result", "Ok", "Err",
    # Config
    "RetrycaseSettings", "get_settings", "clear_settings_cache",
    # Concurrency
    "CancelController", "CancelSignal", "sleep", "run_sync",
    # Retry
    "retry", "retry_sync", "run_attempt", "RetryPolicy", "NO_RETRY", "default_should_retry",
    "SessionResult", "Succeeded", "Failed",
    "Backoff", "ExponentialBackoff", "Jitter", "compute_delay",
    # Observability
    "configure_logging", "get_logger", "log_context",
]
