"""Error handling for retrycase.

- FailureKind: why an attempt did not produce a usable value
- RetryError and subclasses: Cancelled, DeadlineExceeded, InvalidResult, WorkError
- Result/Ok/Err: explicit success/failure values
- get_status_code: status-code lookup used by the default retry predicate
"""

from .errors import (
    Cancelled,
    DeadlineExceeded,
    FailureKind,
    InvalidResult,
    RetryError,
    WorkError,
    classify_failure,
    get_status_code,
)
from .result import Err, Ok, Result

__all__ = [
    # Taxonomy
    "FailureKind", "RetryError", "Cancelled", "DeadlineExceeded", "InvalidResult", "WorkError",
    "classify_failure", "get_status_code",
    # Result
    "Result", "Ok", "Err",
]
