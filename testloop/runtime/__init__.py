"""
Runtime package: time source, scheduled call queue and the event loop.
"""

from .clock import MonotonicTimeSource, TimeSource, VirtualTimeSource, now_ms
from .event_loop import EventLoop
from .sched_queue import ScheduledCall, ScheduledCallQueue

__all__ = ["EventLoop", "MonotonicTimeSource", "ScheduledCall", "ScheduledCallQueue", "TimeSource", "VirtualTimeSource", "now_ms"]
