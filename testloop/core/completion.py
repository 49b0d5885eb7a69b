# testloop/core/completion.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class CompletionState(Enum):
    """
    Lifecycle of one event loop run. NOT_COMPLETE is the only non-terminal state.
    """

    NOT_COMPLETE = auto()
    SUCCESS = auto()
    ERROR = auto()
    ABORTED = auto()

    @property
    def is_terminal(self) -> bool:
        return self is not CompletionState.NOT_COMPLETE

    def __str__(self) -> str:
        return f"ASYNC_COMPLETE_{self.name}"


class Completion:
    """
    Single-writer state machine holding a loop's completion state. The state
    leaves NOT_COMPLETE at most once; later transitions are refused.

    Not thread-safe on its own: the owning loop serializes access under its lock.
    """

    def __init__(self) -> None:
        self._state = CompletionState.NOT_COMPLETE

    @property
    def state(self) -> CompletionState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return self._state.is_terminal

    def transition(self, new_state: CompletionState) -> bool:
        """
        Move to a terminal state.

        :param new_state: SUCCESS, ERROR or ABORTED.
        :return: True if the transition happened, False if already terminal.
        """
        if not new_state.is_terminal:
            raise ValueError("Cannot transition back to NOT_COMPLETE")
        if self._state.is_terminal:
            return False
        self._state = new_state
        return True


@dataclass(frozen=True)
class LoopResult:
    """Outcome of a loop run as reported to a test harness."""

    state: CompletionState
    error_msg: str = ""
    error_tag: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is CompletionState.SUCCESS
