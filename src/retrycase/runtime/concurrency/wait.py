"""Wait strategies that respect cancellation signals.

    - sleep: timed wait that a CancelSignal can interrupt
    - race: first awaitable to complete wins, the rest are cancelled

Both release the timers and signal listeners they register on every exit
path, including cancellation of the calling task. race() cancels the losers
without waiting for them to finish.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from retrycase.foundation.errors import Cancelled

from .signal import CancelSignal

T = TypeVar("T")


def _resolve(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)


async def sleep(delay_ms: float, signal: CancelSignal | None = None) -> None:
    """Suspend for ``delay_ms`` milliseconds unless ``signal`` is cancelled first.

    Raises:
        Cancelled: If the signal is already cancelled (no timer is scheduled)
            or becomes cancelled while waiting.
    """
    if signal is not None and signal.cancelled:
        raise Cancelled("Delay aborted.")
    if signal is None:
        await asyncio.sleep(max(delay_ms, 0) / 1000)
        return

    loop = asyncio.get_running_loop()
    future: asyncio.Future[None] = loop.create_future()

    def _abort() -> None:
        if not future.done():
            future.set_exception(Cancelled("Delay aborted."))

    timer = loop.call_later(max(delay_ms, 0) / 1000, _resolve, future)
    remove = signal.add_listener(_abort)
    try:
        await future
    finally:
        timer.cancel()
        remove()


def _retrieve(task: asyncio.Future[object]) -> None:
    if not task.cancelled():
        task.exception()  # mark retrieved


async def race(*aws: Awaitable[T]) -> T:
    """Race awaitables - first to complete wins.

    The remaining ones are cancelled but not awaited, so a loser that cleans
    up slowly never delays the result; their outcomes are still retrieved
    once they finish. If the first to complete raised, that exception
    propagates. When the calling task is cancelled, every awaitable is
    cancelled and awaited before the cancellation propagates.

    Raises:
        ValueError: If no awaitables are provided
    """
    if not aws:
        raise ValueError("race() requires at least one awaitable")

    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
        task.add_done_callback(_retrieve)

    winner = next(t for t in tasks if t in done)
    for task in done:
        if task is not winner:
            _retrieve(task)
    return winner.result()
