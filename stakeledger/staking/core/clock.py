# MIT License
# Copyright (c) 2025 Hashborn

import time


class SystemClock:
    """Wall-clock seconds. Monotonicity is assumed, not enforced."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock driven explicitly by the caller (tests, simulations)."""

    def __init__(self, start: int = 0):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Cannot move clock backwards")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"Cannot move clock backwards: {timestamp} < {self._now}")
        self._now = int(timestamp)
