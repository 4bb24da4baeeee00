"""Millisecond wall clocks."""

import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock advanced explicitly; drives file replays and tests."""

    def __init__(self, start_ms: int = 0):
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def set(self, now_ms: int) -> None:
        # Never run backwards; late fixes must not shrink elapsed time
        self._now = max(self._now, int(now_ms))

    def advance(self, seconds: float) -> None:
        self._now += int(seconds * 1000)
