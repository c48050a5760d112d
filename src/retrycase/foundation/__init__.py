"""Foundation - Core building blocks for retrycase.

Contains: error taxonomy, Result type, configuration, test doubles.
"""

from __future__ import annotations

__all__ = [
    # Errors
    "FailureKind", "RetryError", "Cancelled", "DeadlineExceeded", "InvalidResult", "WorkError",
    "classify_failure", "get_status_code",
    "Result", "Ok", "Err",
    # Testing
    "StatusError", "FlakyWork", "SlowWork", "SoftFailureWork", "StatusCodeWork",
    # Config
    "RetrycaseSettings", "RetrySettings", "LoggingSettings", "get_settings", "clear_settings_cache",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("FailureKind", "RetryError", "Cancelled", "DeadlineExceeded", "InvalidResult", "WorkError",
                "classify_failure", "get_status_code", "Result", "Ok", "Err"):
        from . import errors
        return getattr(errors, name)

    if name in ("StatusError", "FlakyWork", "SlowWork", "SoftFailureWork", "StatusCodeWork"):
        from . import testing
        return getattr(testing, name)

    if name in ("RetrycaseSettings", "RetrySettings", "LoggingSettings", "get_settings", "clear_settings_cache"):
        from . import config
        return getattr(config, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
