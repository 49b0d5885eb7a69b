"""testloop: deterministic event loop for testing asynchronous code paths

A test declares the completion events it expects ("done" items), each with an
optional timeout and an optional required order, schedules callbacks on a
jittered virtual timeline, and runs the loop until every item resolves, a
timeout fires, or an error is raised.

Responsibilities:
    - Scheduling callbacks by delay, with jitter and ordered anchoring
    - Tracking done items, their deadlines and resolution order
    - A single completion state per loop run

Cross-cutting Concerns:
    Thread Safety:
        - Scheduled calls run sequentially on the thread calling run()
        - done()/error()/abort() may be called from other threads; they are
          serialized with the loop, which yields its lock only while parked

    Error Handling:
        - UsageError for misuse, ResolutionError (and subclasses) for failed
          resolutions; run() raises whenever the loop ends in ERROR

    Logging:
        - Standard library logging under the ``testloop`` logger
        - Defaults from ``TESTLOOP_*`` environment variables
"""

from .core.completion import CompletionState, LoopResult
from .core.done import DEFAULT_TAG, DoneItem, DoneSpec, DoneStatus
from .core.errors import (
    AlreadyResolvedError,
    DoneTimeout,
    LoopError,
    OrderError,
    ResolutionError,
    UsageError,
)
from .core.settings import LoopSettings, get_settings, reset_settings
from .log import configure_logging
from .runtime.clock import MonotonicTimeSource, TimeSource, VirtualTimeSource
from .runtime.event_loop import EventLoop
from .runtime.sched_queue import ScheduledCall, ScheduledCallQueue

__version__ = "0.1.0"

__all__ = [
    "AlreadyResolvedError",
    "CompletionState",
    "DEFAULT_TAG",
    "DoneItem",
    "DoneSpec",
    "DoneStatus",
    "DoneTimeout",
    "EventLoop",
    "LoopError",
    "LoopResult",
    "LoopSettings",
    "MonotonicTimeSource",
    "OrderError",
    "ResolutionError",
    "ScheduledCall",
    "ScheduledCallQueue",
    "TimeSource",
    "UsageError",
    "VirtualTimeSource",
    "configure_logging",
    "get_settings",
    "reset_settings",
]
