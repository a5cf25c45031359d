"""Cancellation tokens for blocking waits."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class CancelToken:
    """Cooperative cancellation signal with an optional deadline.

    Waits go through :meth:`sleep`, which wakes up as soon as the token is
    cancelled from another thread or its deadline passes.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        parent: CancelToken | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        self._event.set()

    def remaining(self) -> float | None:
        own = None if self._deadline is None else max(0.0, self._deadline - self._clock())
        inherited = self._parent.remaining() if self._parent is not None else None
        if own is None:
            return inherited
        if inherited is None:
            return own
        return min(own, inherited)

    def derive(self, timeout: float | None) -> CancelToken:
        """Child token cancelled with this one, optionally with a tighter deadline."""
        return CancelToken(timeout=timeout, parent=self, clock=self._clock)

    def sleep(self, seconds: float) -> bool:
        """Block up to ``seconds``; return ``False`` if cancelled before or during the wait."""
        if self.cancelled:
            return False
        remaining = self.remaining()
        budget = seconds if remaining is None else min(seconds, remaining)
        end = self._clock() + max(0.0, budget)
        while True:
            left = end - self._clock()
            if left <= 0:
                break
            # Parent cancellation is not signalled on our event; wake periodically.
            wait_for = left if self._parent is None else min(left, 0.05)
            if self._event.wait(wait_for):
                return False
            if self.cancelled:
                return False
        return not self.cancelled


def ensure_token(cancel: CancelToken | None) -> CancelToken:
    return cancel if cancel is not None else CancelToken()
