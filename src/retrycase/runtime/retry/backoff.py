"""Exponential backoff with jitter.

Delay before the retry that follows attempt ``n`` (1-indexed)::

    raw = min(base_delay_ms * 2 ** (n - 1), max_delay_ms)

then jitter is applied:

- none:  floor(raw)
- full:  floor(uniform(0, raw))
- equal: floor(raw / 2 + uniform(0, raw / 2))

The random source is injectable so seeded tests get reproducible delays.
Reference: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol, runtime_checkable

# 2.0 ** 1024 overflows a float; anything past this is clamped by max_delay anyway
_MAX_EXPONENT = 1023


class Jitter(StrEnum):
    """Randomization applied to the computed backoff."""
    NONE = "none"
    FULL = "full"
    EQUAL = "equal"


def compute_delay(
    base_delay_ms: float,
    max_delay_ms: float,
    jitter: Jitter | str,
    attempt: int,
    rng: random.Random | None = None,
) -> int:
    """Backoff in whole milliseconds after the given (1-indexed) failed attempt.

    Args:
        base_delay_ms: Delay after the first failure
        max_delay_ms: Cap applied before jitter
        jitter: none, full or equal
        attempt: Index of the attempt that just failed, starting at 1
        rng: Random source; the module-level generator when omitted

    Returns:
        Delay in milliseconds, always within [0, max_delay_ms]
    """
    exponent = min(max(attempt - 1, 0), _MAX_EXPONENT)
    raw = min(base_delay_ms * 2.0 ** exponent, max_delay_ms)
    uniform = (rng or random).random
    match Jitter(jitter):
        case Jitter.FULL:
            wait = uniform() * raw
        case Jitter.EQUAL:
            half = raw / 2
            wait = half + uniform() * half
        case _:
            wait = raw
    return math.floor(wait)


@runtime_checkable
class Backoff(Protocol):
    """Protocol for backoff delay calculation."""

    def delay(self, attempt: int) -> int:
        """Delay in milliseconds after the given 1-indexed failed attempt."""
        ...


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff with a cap and optional jitter.

    Attributes:
        base_delay_ms: Initial delay (default: 500)
        max_delay_ms: Maximum delay cap (default: 7000)
        jitter: Jitter strategy (default: full)
        rng: Random source, injectable for deterministic tests
    """

    base_delay_ms: float = 500.0
    max_delay_ms: float = 7000.0
    jitter: Jitter = Jitter.FULL
    rng: random.Random | None = field(default=None, repr=False, compare=False)

    def delay(self, attempt: int) -> int:
        return compute_delay(self.base_delay_ms, self.max_delay_ms, self.jitter, attempt, self.rng)

    def schedule(self, attempts: int) -> list[int]:
        """Delays between ``attempts`` consecutive attempts (one fewer than attempts)."""
        return [self.delay(n) for n in range(1, attempts)]
