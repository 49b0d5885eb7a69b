# testloop/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Optional


class LoopError(Exception):
    """
    Base exception class for errors raised by the test event loop.
    """


class UsageError(LoopError):
    """
    Raised on programmer misuse of the loop: unknown or duplicate done() tags,
    unknown done() options, running a loop with nothing scheduled. Never changes
    the loop's completion state.
    """


class ResolutionError(LoopError):
    """
    Raised when a done item fails to resolve correctly. Sets the loop's
    completion state to ERROR.
    """

    def __init__(self, message: str, tag: Optional[str] = None) -> None:
        super().__init__(message)
        self.tag = tag


class AlreadyResolvedError(ResolutionError):
    """
    Raised when done() is called for an item that was already resolved.
    """


class OrderError(ResolutionError):
    """
    Raised when an ordered done item resolves out of its required order.
    """

    def __init__(self, message: str, tag: Optional[str], expected: int, actual: int) -> None:
        super().__init__(message, tag)
        self.expected = expected
        self.actual = actual


class DoneTimeout(ResolutionError):
    """
    Raised by a done item's timeout guard when its deadline passes unresolved.
    """
