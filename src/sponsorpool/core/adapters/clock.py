"""
Clock implementations.
"""

from __future__ import annotations

import threading
import time


class SystemClock:
    """Wall-clock time in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int = 0) -> None:
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        with self._lock:
            self._now += int(seconds)
            return self._now
