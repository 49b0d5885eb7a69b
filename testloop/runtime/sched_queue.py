# testloop/runtime/sched_queue.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Optional, Tuple

Action = Callable[[], None]


class ScheduledCall:
    """
    Handle to an entry of a ScheduledCallQueue. Stays valid after the entry
    fires or is removed, so holders may safely remove a stale handle.
    """

    __slots__ = ("fire_time_ms", "action", "seq", "_queued")

    def __init__(self, fire_time_ms: int, action: Action, seq: int) -> None:
        self.fire_time_ms = fire_time_ms
        self.action = action
        self.seq = seq
        self._queued = True

    @property
    def pending(self) -> bool:
        """True while the entry is still in its queue."""
        return self._queued

    def __call__(self) -> None:
        self.action()

    def __repr__(self) -> str:
        state = "pending" if self._queued else "done"
        return f"<ScheduledCall #{self.seq} at {self.fire_time_ms} ms {state}>"


class ScheduledCallQueue:
    """
    Calls ordered by fire time, ties broken by insertion order.

    Entries live in a heap keyed by ``(fire_time_ms, seq)``. Removal only marks
    the handle; dead entries are discarded when they reach the top, so
    inserting or removing never disturbs other outstanding handles.
    """

    def __init__(self) -> None:
        self._heap: List[Tuple[int, int, ScheduledCall]] = []
        self._seq = itertools.count()
        self._live = 0

    def insert(self, fire_time_ms: int, action: Action) -> ScheduledCall:
        """
        Add a call to the queue.

        :return: Handle usable with remove().
        """
        call = ScheduledCall(fire_time_ms, action, next(self._seq))
        heapq.heappush(self._heap, (fire_time_ms, call.seq, call))
        self._live += 1
        return call

    def peek_earliest(self) -> Optional[ScheduledCall]:
        """Return the next call to fire without removing it, or None."""
        self._discard_dead()
        if not self._heap:
            return None
        return self._heap[0][2]

    def pop_earliest(self) -> Optional[ScheduledCall]:
        """Remove and return the next call to fire, or None."""
        self._discard_dead()
        if not self._heap:
            return None
        _, _, call = heapq.heappop(self._heap)
        call._queued = False
        self._live -= 1
        return call

    def remove(self, call: Optional[ScheduledCall]) -> bool:
        """
        Remove a call by handle. No-op for None or an already fired/removed call.

        :return: True if the call was pending and is now removed.
        """
        if call is None or not call._queued:
            return False
        call._queued = False
        self._live -= 1
        return True

    def is_empty(self) -> bool:
        return self._live == 0

    def _discard_dead(self) -> None:
        while self._heap and not self._heap[0][2]._queued:
            heapq.heappop(self._heap)

    def __len__(self) -> int:
        return self._live

    def __bool__(self) -> bool:
        return self._live > 0
