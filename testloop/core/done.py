# testloop/core/done.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from testloop.core.errors import UsageError

if TYPE_CHECKING:
    from testloop.runtime.sched_queue import ScheduledCall

DEFAULT_TAG = "_default"

_TIMEOUT_OPTIONS = ("timeout", "tmo")
_ORDER_OPTION = "order"


class DoneStatus(Enum):
    """Resolution status of a single done item."""

    NOT_COMPLETE = auto()
    SUCCESS = auto()
    ERROR = auto()


@dataclass(frozen=True)
class DoneSpec:
    """
    Declaration of an expected completion event.

    :param tag: Unique name of the done item.
    :param timeout_ms: Per-item timeout overriding the loop default, or None.
    :param order: Required resolution rank, 0 for no ordering constraint.
    """

    tag: str
    timeout_ms: Optional[int] = None
    order: int = 0

    def __post_init__(self) -> None:
        if not self.tag:
            raise UsageError("done() tag must not be empty")
        if self.timeout_ms is not None and self.timeout_ms < 0:
            raise UsageError(f"Negative timeout for done() with tag '{self.tag}'")
        if self.order < 0:
            raise UsageError(f"Negative order for done() with tag '{self.tag}'")

    @classmethod
    def from_options(cls, tag: str, **options: int) -> "DoneSpec":
        """
        Build a spec from loosely named options: ``timeout``/``tmo`` and ``order``.

        :raises UsageError: On any other option name.
        """
        timeout_ms = None
        order = 0
        for name, value in options.items():
            if name in _TIMEOUT_OPTIONS:
                timeout_ms = value
            elif name == _ORDER_OPTION:
                order = value
            else:
                raise UsageError(f"Unknown property '{name}' of done() with tag '{tag}'")
        return cls(tag, timeout_ms=timeout_ms, order=order)

    @classmethod
    def coerce(cls, spec: Union["DoneSpec", str, Sequence[Any]]) -> "DoneSpec":
        """
        Accept a DoneSpec, a bare tag, or a ``(tag, name1, value1, ...)`` tuple.
        """
        if isinstance(spec, DoneSpec):
            return spec
        if isinstance(spec, str):
            return cls(spec)
        items = list(spec)
        if not items or len(items) % 2 != 1:
            raise UsageError(f"Malformed done() specification: {spec!r}")
        tag, pairs = items[0], items[1:]
        options = {pairs[i]: pairs[i + 1] for i in range(0, len(pairs), 2)}
        return cls.from_options(tag, **options)


@dataclass
class DoneItem:
    """
    Runtime record of a registered done item. ``deadline_ms`` holds the relative
    timeout until the loop arms it, then the absolute deadline.
    """

    tag: str
    deadline_ms: int
    order: int = 0
    status: DoneStatus = DoneStatus.NOT_COMPLETE
    armed: bool = False
    guard: Optional["ScheduledCall"] = field(default=None, repr=False)

    @property
    def is_resolved(self) -> bool:
        return self.status is not DoneStatus.NOT_COMPLETE

    def arm(self, now_ms: int) -> None:
        """Convert the relative timeout into an absolute deadline."""
        if self.armed:
            return
        self.deadline_ms += now_ms
        self.armed = True


class DoneRegistry:
    """
    Mapping of unique tags to done items, plus the running counter used to
    check ordered resolutions.
    """

    def __init__(self, default_timeout_ms: int) -> None:
        self._default_timeout_ms = default_timeout_ms
        self._items: Dict[str, DoneItem] = {}
        self._order_counter = 0

    @property
    def order_counter(self) -> int:
        """Rank of the last ordered item that resolved in order."""
        return self._order_counter

    def add(self, spec: DoneSpec) -> DoneItem:
        """
        Register a done item from its spec.

        :raises UsageError: If the tag is already registered.
        """
        if spec.tag in self._items:
            raise UsageError(f"addDone: Duplicate done() tag '{spec.tag}'")
        timeout_ms = self._default_timeout_ms if spec.timeout_ms is None else spec.timeout_ms
        item = DoneItem(tag=spec.tag, deadline_ms=timeout_ms, order=spec.order)
        self._items[spec.tag] = item
        return item

    def get(self, tag: str) -> Optional[DoneItem]:
        return self._items.get(tag)

    def lookup(self, tag: str) -> DoneItem:
        """
        Return the item for ``tag``.

        :raises UsageError: If the tag is unknown.
        """
        item = self._items.get(tag)
        if item is None:
            raise UsageError(f"Unknown done() tag '{tag}'")
        return item

    def check_order(self, item: DoneItem) -> Optional[Tuple[int, int]]:
        """
        Check an item's rank against the running counter, advancing the counter
        on success. Unordered items always pass and never touch the counter.

        :return: None when in order, otherwise ``(expected, actual)`` ranks.
        """
        if not item.order:
            return None
        expected = self._order_counter + 1
        if item.order != expected:
            return expected, item.order
        self._order_counter = expected
        return None

    def unresolved(self) -> List[DoneItem]:
        return [item for item in self._items.values() if not item.is_resolved]

    def __contains__(self, tag: object) -> bool:
        return tag in self._items

    def __iter__(self) -> Iterator[DoneItem]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)
