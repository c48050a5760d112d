"""Cooperative cancellation signals.

A CancelController owns a CancelSignal. The signal is the read side handed
to other code: it can be polled (``cancelled``), observed through one-shot
listeners, or awaited. The controller is the write side; cancelling is
one-way and idempotent, and every listener registered at that moment is
called exactly once.

Two controllers are used per retry session: the caller's operation-wide
controller and a fresh per-attempt controller. Propagation runs parent to
child only (see CancelController.linked).

Example:
    >>> controller = CancelController()
    >>> result = await retry(fetch, signal=controller.signal)
    >>> # elsewhere
    >>> controller.cancel("user navigated away")
"""

from __future__ import annotations

import asyncio
from typing import Callable

from retrycase.runtime.observability import get_logger

Listener = Callable[[], None]

log = get_logger("retrycase.signal")


class CancelSignal:
    """Observable cancellation state: not cancelled -> cancelled, once."""

    __slots__ = ("_cancelled", "_reason", "_listeners")

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: object = None
        self._listeners: list[Listener] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> object:
        return self._reason

    @property
    def listener_count(self) -> int:
        """Listeners still waiting to fire."""
        return len(self._listeners)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a one-shot callback and return a function that removes it.

        A signal that is already cancelled never calls listeners added
        afterwards; check ``cancelled`` first.
        """
        if not self._cancelled:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass  # already fired or removed

    async def wait(self) -> object:
        """Suspend until cancelled and return the reason."""
        if self._cancelled:
            return self._reason
        future: asyncio.Future[object] = asyncio.get_running_loop().create_future()

        def _wake() -> None:
            if not future.done():
                future.set_result(self._reason)

        remove = self.add_listener(_wake)
        try:
            return await future
        finally:
            remove()

    def _fire(self, reason: object) -> bool:
        if self._cancelled:
            return False
        self._cancelled, self._reason = True, reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:
                log.exception("cancel listener failed", listener=getattr(listener, "__qualname__", repr(listener)))
        return True

    def __repr__(self) -> str:
        return f"CancelSignal(cancelled={self._cancelled}, listeners={len(self._listeners)})"


class CancelController:
    """Write side of a CancelSignal."""

    __slots__ = ("_signal",)

    def __init__(self) -> None:
        self._signal = CancelSignal()

    @property
    def signal(self) -> CancelSignal:
        return self._signal

    @property
    def cancelled(self) -> bool:
        return self._signal.cancelled

    def cancel(self, reason: object = None) -> bool:
        """Cancel the signal. Returns False if it was already cancelled."""
        return self._signal._fire(reason)

    @classmethod
    def linked(cls, parent: CancelSignal | None) -> tuple[CancelController, Callable[[], None]]:
        """Child controller cancelled whenever ``parent`` is.

        Returns the controller and a function detaching it from the parent.
        Cancelling the child never touches the parent.
        """
        child = cls()
        if parent is None:
            return child, _noop
        if parent.cancelled:
            child.cancel(parent.reason)
            return child, _noop
        return child, parent.add_listener(lambda: child.cancel(parent.reason))


def _noop() -> None:
    pass
