"""Cancellation and waiting primitives for retry sessions.

Key Components:
    - CancelSignal / CancelController: one-way, broadcast cancellation
    - sleep: timed wait interruptible by a CancelSignal
    - race: first-completed wait with cleanup of the losers
    - run_sync: drive a coroutine from synchronous code

Example:
    >>> controller = CancelController()
    >>> await sleep(250, controller.signal)  # raises Cancelled if cancelled meanwhile
"""

from __future__ import annotations

from .interop import run_sync
from .signal import CancelController, CancelSignal
from .wait import race, sleep

__all__ = [
    "CancelController",
    "CancelSignal",
    "sleep",
    "race",
    "run_sync",
]
