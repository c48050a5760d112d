"""Failure taxonomy for retry sessions.

Every attempt that does not yield a usable value is recorded as an exception.
Failures raised by the engine itself derive from RetryError and carry a
FailureKind; anything the unit of work raised is kept as-is and classified
as PROPAGATED.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class FailureKind(StrEnum):
    """Why an attempt did not produce a usable value."""
    CANCELLED = "CANCELLED"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    INVALID_RESULT = "INVALID_RESULT"
    PROPAGATED = "PROPAGATED"


class RetryError(Exception):
    """Base class for failures produced by the retry engine."""

    kind: FailureKind = FailureKind.PROPAGATED
    default_message: str = "The operation failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class Cancelled(RetryError):
    """Operation-wide or per-attempt cancellation was triggered."""

    kind = FailureKind.CANCELLED
    default_message = "The operation was aborted."


class DeadlineExceeded(RetryError):
    """The per-attempt deadline fired before the work settled."""

    kind = FailureKind.DEADLINE_EXCEEDED
    default_message = "The operation timed out."

    def __init__(self, message: str | None = None, *, attempt: int | None = None, timeout_ms: float | None = None) -> None:
        super().__init__(message)
        self.attempt = attempt
        self.timeout_ms = timeout_ms


class InvalidResult(RetryError):
    """The work returned a value the invalid-result predicate rejected."""

    kind = FailureKind.INVALID_RESULT
    default_message = "The result was considered invalid."

    def __init__(self, message: str | None = None, *, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class WorkError(RetryError):
    """Non-exception error payload reported by the work through Err(...)."""

    default_message = "The work reported an error."

    def __init__(self, payload: object) -> None:
        super().__init__(payload if isinstance(payload, str) else f"{self.default_message} {payload!r}")
        self.payload = payload


def classify_failure(error: BaseException) -> FailureKind:
    """Map a recorded failure to its FailureKind."""
    return error.kind if isinstance(error, RetryError) else FailureKind.PROPAGATED


_STATUS_FIELDS = ("status_code", "status", "code")


def _int_or_none(v: object) -> int | None:
    return v if isinstance(v, int) and not isinstance(v, bool) else None


def _lookup(source: object, key: str) -> object:
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def get_status_code(error: object) -> int | None:
    """Extract an HTTP-like status code from an error, if it carries one.

    Looks at ``status_code``, ``status`` and ``code`` first, then at the
    same fields on a nested ``response``. Mappings are read by key. Only
    integers count, so ``errno``-style string codes are ignored.
    """
    if error is None:
        return None
    if isinstance(error, WorkError):
        return get_status_code(error.payload)
    for key in _STATUS_FIELDS:
        if (code := _int_or_none(_lookup(error, key))) is not None:
            return code
    if (response := _lookup(error, "response")) is not None:
        for key in ("status", "status_code"):
            if (code := _int_or_none(_lookup(response, key))) is not None:
                return code
    return None
