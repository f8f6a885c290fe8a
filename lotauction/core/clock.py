"""Clocks evaluated lazily by the auction at call time."""

import time


class SystemClock:
    """Wall-clock seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock advanced explicitly (tests, demo, replays).

    Time never moves backwards.
    """

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("clock cannot go backwards")
        self.now += seconds
        return self.now

    def set(self, timestamp: int) -> int:
        if timestamp < self.now:
            raise ValueError("clock cannot go backwards")
        self.now = timestamp
        return self.now
