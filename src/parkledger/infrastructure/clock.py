# File: src/parkledger/infrastructure/clock.py
"""
Clocks for the parking ledger. All moments are integer milliseconds.
"""

import logging
import time


class SystemClock:
    """Wall clock that never goes backwards"""

    def __init__(self):
        self._last = 0
        self._logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> int:
        current = time.time_ns() // 1_000_000
        if current < self._last:
            self._logger.warning(f"System clock moved backwards by {self._last - current}ms")
            return self._last
        self._last = current
        return current


class ManualClock:
    """Clock advanced explicitly, for tests and demos"""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Clock cannot start before zero")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, millis: int) -> int:
        if millis < 0:
            raise ValueError("Clock can only move forward")
        self._now += millis
        return self._now

    def advance_seconds(self, seconds: int) -> int:
        return self.advance(seconds * 1000)

    def set(self, moment: int) -> None:
        if moment < self._now:
            raise ValueError("Clock can only move forward")
        self._now = moment
