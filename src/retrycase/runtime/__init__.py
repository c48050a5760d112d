"""Runtime - Execution flow, control, and monitoring.

Contains: retry sessions, concurrency primitives, observability.
The retry() entry point lives in retrycase.runtime.retry (or the top-level package).
"""

from __future__ import annotations

__all__ = [
    # Retry
    "retry_sync", "run_attempt", "RetryPolicy", "NO_RETRY", "default_should_retry",
    "SessionResult", "Succeeded", "Failed",
    "Backoff", "ExponentialBackoff", "Jitter", "compute_delay",
    # Concurrency
    "CancelController", "CancelSignal", "sleep", "race", "run_sync",
    # Observability
    "configure_logging", "get_logger", "log_context",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("retry_sync", "run_attempt", "RetryPolicy", "NO_RETRY", "default_should_retry",
                "SessionResult", "Succeeded", "Failed",
                "Backoff", "ExponentialBackoff", "Jitter", "compute_delay"):
        from . import retry as _retry
        return getattr(_retry, name)

    if name in ("CancelController", "CancelSignal", "sleep", "race", "run_sync"):
        from . import concurrency
        return getattr(concurrency, name)

    if name in ("configure_logging", "get_logger", "log_context"):
        from . import observability
        return getattr(observability, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
