"""Live-reload change counter shared by the watcher and request threads."""

from __future__ import annotations

import threading
import time
from typing import Optional


def now_ms() -> int:
    """Milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class ReloadState:
    """Monotonic change counter.

    The counter starts at server start time and is raised to the current
    time whenever the watcher reports changes, and always to at least one
    past its previous value. It never decreases, even if the wall clock
    steps backwards, so a client that adopted a counter value cannot miss a
    later change.
    """

    def __init__(self, start: Optional[int] = None):
        self._lock = threading.Lock()
        self._counter = now_ms() if start is None else start

    @property
    def counter(self) -> int:
        with self._lock:
            return self._counter

    def mark_changed(self, at: Optional[int] = None) -> int:
        """Record a change and return the new counter value."""
        moment = now_ms() if at is None else at
        with self._lock:
            self._counter = max(self._counter + 1, moment)
            return self._counter

    def should_reload(self, client_counter: int) -> tuple[bool, int]:
        """Return ``(reload, counter)`` for a client that last saw *client_counter*."""
        counter = self.counter
        return counter > client_counter, counter
