"""
Cancellation tokens.

Any object with `is_set()` and `wait(timeout)` works as a token; a plain
threading.Event is the usual one. LinkedToken fires when its parent fires or
when its own deadline passes, which gives periodic callers a soft timeout
without touching the parent.
"""
from __future__ import annotations

import threading
import time
from typing import Optional


class LinkedToken:
    """Token set by its parent, by cancel(), or by an optional deadline."""

    _POLL = 0.05

    def __init__(self, parent=None, timeout: Optional[float] = None):
        self._parent = parent
        self._own = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def cancel(self) -> None:
        self._own.set()

    def is_set(self) -> bool:
        if self._own.is_set() or self.timed_out:
            return True
        return self._parent is not None and self._parent.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        end = time.monotonic() + timeout if timeout is not None else None
        while not self.is_set():
            now = time.monotonic()
            if end is not None and now >= end:
                return False
            step = self._POLL
            if end is not None:
                step = min(step, end - now)
            if self._deadline is not None:
                step = min(step, max(0.0, self._deadline - now))
            self._own.wait(step)
        return True


def linked(parent=None, timeout: Optional[float] = None) -> LinkedToken:
    return LinkedToken(parent, timeout)
