"""Retry policy configuration.

A RetryPolicy is built once per call and is read-only for the whole
session. It bounds the number of attempts, shapes the backoff, decides
which failures are worth another attempt and which successful-looking
values are actually soft failures.

Durations are milliseconds throughout.

Example:
    >>> policy = RetryPolicy(
    ...     max_attempts=5,
    ...     base_delay_ms=200,
    ...     jitter="equal",
    ...     attempt_timeout_ms=2_000,
    ...     invalid_result=lambda rows: isinstance(rows, list) and not rows,
    ... )
"""

from __future__ import annotations

import random
from collections.abc import Awaitable
from typing import Annotated, Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from retrycase.foundation.config import RetrySettings, get_settings
from retrycase.foundation.errors import DeadlineExceeded, InvalidResult, get_status_code
from retrycase.runtime.concurrency import CancelSignal

from .backoff import ExponentialBackoff, Jitter

ShouldRetry = Callable[[Exception, int], Union[bool, Awaitable[bool]]]
OnRetry = Callable[[int, Exception, int], Any]
InvalidResultCheck = Callable[[Any], bool]


def default_should_retry(error: Exception, attempt: int | None = None) -> bool:
    """Retry on 5xx-shaped errors, deadlines and invalid results.

    Cancellation and every other error are terminal.
    """
    status = get_status_code(error)
    if status is not None and 500 <= status < 600:
        return True
    return isinstance(error, (DeadlineExceeded, InvalidResult))


class RetryPolicy(BaseModel):
    """Configurable retry policy for one retry session.

    Attributes:
        max_attempts: Hard ceiling on how many times the work is invoked
        base_delay_ms: Backoff after the first failed attempt
        max_delay_ms: Cap on any single backoff (before jitter)
        jitter: none, full or equal
        should_retry: (failure, attempt) -> bool, may be async
        invalid_result: True retries on None results; a callable decides per value
        attempt_timeout_ms: Per-attempt deadline; None means no cap
        signal: Operation-wide cancellation signal
        on_retry: (attempt, failure, delay_ms) hook, may be async, awaited before each backoff
        rng: Random source for jitter
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,  # CancelSignal, random.Random
        validate_default=True,
        extra="forbid",
        revalidate_instances="never",
        json_schema_extra={
            "title": "Retry Policy",
            "description": "Configuration for a retry session",
            "examples": [{"max_attempts": 3, "base_delay_ms": 500, "max_delay_ms": 7000, "jitter": "full"}],
        },
    )

    max_attempts: Annotated[int, Field(ge=1)] = 3
    base_delay_ms: Annotated[float, Field(ge=0)] = 500.0
    max_delay_ms: Annotated[float, Field(ge=0)] = 7000.0
    jitter: Jitter = Jitter.FULL
    should_retry: ShouldRetry = Field(default=default_should_retry, exclude=True, repr=False)
    invalid_result: Union[bool, InvalidResultCheck] = Field(default=False, exclude=True)
    attempt_timeout_ms: Annotated[float, Field(gt=0)] | None = None
    signal: CancelSignal | None = Field(default=None, exclude=True)
    on_retry: OnRetry | None = Field(default=None, exclude=True, repr=False)
    rng: random.Random = Field(default_factory=random.Random, exclude=True, repr=False)

    @field_validator("jitter", mode="before")
    @classmethod
    def _normalize_jitter(cls, v: Jitter | str) -> Jitter | str:
        return v.lower() if isinstance(v, str) and not isinstance(v, Jitter) else v

    @computed_field
    @property
    def max_retries(self) -> int:
        """Retries on top of the first attempt."""
        return self.max_attempts - 1

    @property
    def backoff(self) -> ExponentialBackoff:
        return ExponentialBackoff(self.base_delay_ms, self.max_delay_ms, self.jitter, self.rng)

    def get_delay(self, attempt: int) -> int:
        """Backoff in ms after the given 1-indexed failed attempt."""
        return self.backoff.delay(attempt)

    def is_invalid(self, value: object) -> bool:
        """Whether a successful-looking value should be treated as a soft failure."""
        if callable(self.invalid_result):
            return bool(self.invalid_result(value))
        return self.invalid_result is True and value is None

    def replace(self, **changes: Any) -> RetryPolicy:
        """Validated copy with some fields changed."""
        if not changes:
            return self
        current = {name: getattr(self, name) for name in type(self).model_fields}
        return type(self)(**{**current, **changes})

    @classmethod
    def from_settings(cls, settings: RetrySettings | None = None, **overrides: Any) -> RetryPolicy:
        """Policy seeded from RETRYCASE_RETRY_* configuration."""
        s = settings or get_settings().retry
        return cls(**{
            "max_attempts": s.max_attempts,
            "base_delay_ms": s.base_delay_ms,
            "max_delay_ms": s.max_delay_ms,
            "jitter": s.jitter,
            "attempt_timeout_ms": s.attempt_timeout_ms,
            **overrides,
        })


# Shared single-attempt policy
NO_RETRY = RetryPolicy(max_attempts=1)


def validate_policy(policy: RetryPolicy | dict[str, Any]) -> RetryPolicy:
    """Accept a policy or a plain mapping of its fields."""
    return policy if isinstance(policy, RetryPolicy) else RetryPolicy.model_validate(policy)
