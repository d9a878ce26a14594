"""
Time sources for the registry.

The registry reads time through a zero-argument callable returning integer
seconds. SystemClock wraps time.time(); ManualClock is advanced explicitly
so tests and demos can step through an auction's decay.
"""

import threading
import time


class SystemClock:
    """Wall-clock time in whole seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock that only moves when told to.

    Attributes:
        now: Current timestamp in seconds
    """

    def __init__(self, start: int = 1_700_000_000):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by `seconds`, returning the new time."""
        if seconds < 0:
            raise ValueError("ManualClock cannot advance by a negative amount")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, timestamp: int) -> None:
        """Jump to an absolute timestamp (may move backwards)."""
        with self._lock:
            self._now = timestamp
