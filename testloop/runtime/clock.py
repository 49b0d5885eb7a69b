# testloop/runtime/clock.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
import time
from typing import List


def now_ms() -> int:
    """Monotonic time in whole milliseconds."""
    return int(time.monotonic() * 1000)


class TimeSource:
    """
    Abstract definition for obtaining the current time and blocking until a
    later time. Allows virtual clocks to be plugged into the event loop.
    """

    def now_ms(self) -> int:
        raise NotImplementedError()

    def wait(self, condition: threading.Condition, ms: int) -> None:
        """
        Block for up to ``ms`` milliseconds. The caller holds ``condition``'s
        lock; implementations must release it while blocked and hold it again
        on return.
        """
        raise NotImplementedError()


class MonotonicTimeSource(TimeSource):
    """Real time source backed by ``time.monotonic``."""

    def now_ms(self) -> int:
        return now_ms()

    def wait(self, condition: threading.Condition, ms: int) -> None:
        condition.wait(ms / 1000.0)


class VirtualTimeSource(TimeSource):
    """
    Deterministic clock for tests. Waiting advances the virtual time instead of
    blocking, so a whole loop run completes instantly and reproducibly.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self.waits: List[int] = []

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> None:
        self._now += ms

    def wait(self, condition: threading.Condition, ms: int) -> None:
        self.waits.append(ms)
        self._now += ms
