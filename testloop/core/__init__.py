"""
Core data model: done items, completion state, errors and settings.
"""

from .completion import Completion, CompletionState, LoopResult
from .done import DEFAULT_TAG, DoneItem, DoneRegistry, DoneSpec, DoneStatus
from .errors import AlreadyResolvedError, DoneTimeout, LoopError, OrderError, ResolutionError, UsageError
from .settings import LoopSettings, get_settings, reset_settings

__all__ = [
    "AlreadyResolvedError",
    "Completion",
    "CompletionState",
    "DEFAULT_TAG",
    "DoneItem",
    "DoneRegistry",
    "DoneSpec",
    "DoneStatus",
    "DoneTimeout",
    "LoopError",
    "LoopResult",
    "LoopSettings",
    "OrderError",
    "ResolutionError",
    "UsageError",
    "get_settings",
    "reset_settings",
]
