# testloop/runtime/event_loop.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
import random
import threading
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional, Sequence, Union

from testloop.core.completion import Completion, CompletionState, LoopResult
from testloop.core.done import DEFAULT_TAG, DoneItem, DoneRegistry, DoneSpec, DoneStatus
from testloop.core.errors import (
    AlreadyResolvedError,
    DoneTimeout,
    OrderError,
    ResolutionError,
    UsageError,
)
from testloop.core.settings import get_settings
from testloop.log import DONES_LOGGER
from testloop.runtime.clock import MonotonicTimeSource, TimeSource
from testloop.runtime.sched_queue import Action, ScheduledCall, ScheduledCallQueue

logger = logging.getLogger(__name__)
dones_logger = logging.getLogger(DONES_LOGGER)

DoneSpecLike = Union[DoneSpec, str, Sequence[Any]]


def _tagged(tag: str, msg: str) -> str:
    return f"done('{tag}'): {msg}"


class EventLoop:
    """
    Runs scheduled function calls, added via sched_call(), on a virtual timeline
    and watches the done items, added via add_done(), being resolved within
    their timeout and in their required order.

    All engine state is guarded by one reentrant lock. run() holds it for the
    whole run except while parked waiting for the next fire time, which is the
    only window in which other threads may call done(), error() or abort().
    Calls from other threads outside that window block until the loop parks.
    """

    def __init__(
        self,
        done_specs: Optional[Iterable[DoneSpecLike]] = None,
        timeout_ms: Optional[int] = None,
        *,
        jitter_pct: Optional[int] = None,
        time_source: Optional[TimeSource] = None,
        seed: Optional[int] = None,
    ) -> None:
        """
        Create a loop.

        :param done_specs: Done items to register. When omitted, a single
            ``_default`` item is registered so bare done()/error() calls work.
        :param timeout_ms: Default per-item timeout.
        :param jitter_pct: Default jitter window as a percentage of the delay.
        :param time_source: Clock used for scheduling and parking.
        :param seed: Seed for the jitter random generator.
        """
        settings = get_settings()
        self.default_done_timeout_ms = settings.default_done_timeout_ms if timeout_ms is None else timeout_ms
        self.jitter_pct = settings.jitter_pct if jitter_pct is None else jitter_pct
        self._wake_tolerance_ms = settings.wake_tolerance_ms
        self._late_guard_warn_ms = settings.late_guard_warn_ms
        self._log_dones = settings.log_dones

        self._time = time_source or MonotonicTimeSource()
        self._rng = random.Random(settings.seed if seed is None else seed)

        self._lock = threading.RLock()
        self._wakeup = threading.Condition(self._lock)

        self._queue = ScheduledCallQueue()
        self._dones = DoneRegistry(self.default_done_timeout_ms)
        self._completion = Completion()

        self._last_ordered_ms: Optional[int] = None
        self._next_wakeup_ms: Optional[int] = None
        self._started = False
        self._parked = False

        self.error_msg = ""
        self._error_tag: Optional[str] = None
        self._error: Optional[BaseException] = None

        if done_specs is None:
            self._dones.add(DoneSpec(DEFAULT_TAG))
        else:
            for spec in done_specs:
                self._dones.add(DoneSpec.coerce(spec))

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    @property
    def state(self) -> CompletionState:
        return self._completion.state

    @property
    def error_tag(self) -> Optional[str]:
        return self._error_tag

    @property
    def result(self) -> LoopResult:
        """Final outcome as consumed by a test harness."""
        with self._locked():
            return LoopResult(self._completion.state, self.error_msg, self._error_tag)

    @property
    def order_counter(self) -> int:
        return self._dones.order_counter

    @property
    def next_wakeup_ms(self) -> Optional[int]:
        return self._next_wakeup_ms

    @property
    def pending_calls(self) -> int:
        with self._locked():
            return len(self._queue)

    def now_ms(self) -> int:
        return self._time.now_ms()

    def get_done(self, tag: str = DEFAULT_TAG) -> DoneItem:
        with self._locked():
            return self._dones.lookup(tag)

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------
    def sched_call(self, action: Action, delay_ms: int = 100, jitter_pct: Optional[int] = None) -> ScheduledCall:
        """
        Schedule ``action`` to run ``delay_ms`` from now, perturbed by up to
        ``jitter_pct`` percent of the delay either way.

        A negative delay schedules an ordered call: it fires ``-delay_ms`` after
        the previous ordered call rather than after now.

        :return: Handle usable with cancel_call().
        """
        if jitter_pct is None:
            jitter_pct = self.jitter_pct
        with self._locked():
            now = self._time.now_ms()
            if delay_ms < 0:
                delay_ms = -delay_ms
                anchor = now if self._last_ordered_ms is None else self._last_ordered_ms
                fire_time = anchor + delay_ms + self._jitter(delay_ms, jitter_pct)
                self._last_ordered_ms = fire_time
            else:
                fire_time = now + delay_ms + self._jitter(delay_ms, jitter_pct)
            return self._schedule_at(fire_time, action)

    def cancel_call(self, call: Optional[ScheduledCall]) -> bool:
        """Remove a scheduled call. Safe on calls that already fired."""
        with self._locked():
            return self._queue.remove(call)

    def _jitter(self, delay_ms: int, jitter_pct: int) -> int:
        window = (delay_ms * jitter_pct) // 100
        if window <= 0:
            return 0
        return self._rng.randrange(-window, window)

    def _schedule_at(self, fire_time_ms: int, action: Action) -> ScheduledCall:
        call = self._queue.insert(fire_time_ms, action)
        if self._next_wakeup_ms is None or fire_time_ms < self._next_wakeup_ms:
            self._next_wakeup_ms = fire_time_ms
            logger.debug("Setting next event after %d ms", fire_time_ms - self._time.now_ms())
            if self._parked:
                self._wakeup.notify_all()
        return call

    # -------------------------------------------------------------------------
    # Done items
    # -------------------------------------------------------------------------
    def add_done(self, spec: DoneSpecLike, **options: int) -> DoneItem:
        """
        Register a done item. Accepts a DoneSpec, or a tag with ``timeout``/``tmo``
        and ``order`` options.

        :raises UsageError: After run() started, on a duplicate tag or an
            unknown option.
        """
        with self._locked():
            if options:
                if not isinstance(spec, str):
                    raise UsageError("add_done() options require a plain tag")
                spec = DoneSpec.from_options(spec, **options)
            else:
                spec = DoneSpec.coerce(spec)
            if self._started:
                raise UsageError(f"add_done('{spec.tag}') called after run() started")
            return self._dones.add(spec)

    def done(self, tag: str = DEFAULT_TAG) -> None:
        """
        Resolve a done item successfully.

        :raises UsageError: If the tag is unknown.
        :raises AlreadyResolvedError: If the item was already resolved.
        :raises OrderError: If the item resolves out of its required order.
        """
        with self._locked():
            item = self._dones.lookup(tag)
            if item.is_resolved:
                self._fail(AlreadyResolvedError(_tagged(tag, "done() already resolved, can't resolve again"), tag), tag)
                return

            self._queue.remove(item.guard)
            mismatch = self._dones.check_order(item)
            if mismatch is not None:
                expected, actual = mismatch
                msg = f"Did not resolve in expected order. Expected: {expected}, actual: {actual}"
                self._fail(OrderError(_tagged(tag, msg), tag, expected, actual), tag)
                return

            item.status = DoneStatus.SUCCESS
            if self._log_dones:
                dones_logger.info("done('%s') -> success", tag)

    def error(self, tag_or_msg: str, msg: Optional[str] = None) -> None:
        """
        Fail the loop. ``error(msg)`` fails the ``_default`` item, or the loop as
        a whole when there is none; ``error(tag, msg)`` fails the named item.

        :raises ResolutionError: Always, unless the loop was aborted.
        """
        with self._locked():
            if msg is None:
                msg = tag_or_msg
                if DEFAULT_TAG not in self._dones:
                    self._fail(ResolutionError(msg))
                    return
                tag = DEFAULT_TAG
            else:
                tag = tag_or_msg
                if not tag:
                    raise UsageError("error() for a tagged done() item called, but the tag is empty")
                self._dones.lookup(tag)
            self._fail(ResolutionError(_tagged(tag, msg), tag), tag)

    def abort(self) -> None:
        """Stop the loop at its next iteration. No-op once complete."""
        with self._locked():
            if self._completion.transition(CompletionState.ABORTED):
                logger.info("Loop aborted")
                self._wakeup.notify_all()

    def on_complete_error(self) -> None:
        """Hook called once when the loop enters the ERROR state."""

    def _fail(self, error: BaseException, tag: Optional[str] = None, raise_: bool = True) -> None:
        if tag is None:
            tag = getattr(error, "tag", None)
        state = self._completion.state
        if state is CompletionState.ABORTED:
            logger.debug("Ignoring error after abort: %s", error)
            return
        if state is CompletionState.ERROR:
            # First error wins
            if raise_ and self._error is not None:
                raise self._error
            return
        if state is CompletionState.SUCCESS:
            logger.error("Error after loop completed: %s", error)
            if raise_:
                raise error
            return

        item = self._dones.get(tag) if tag else None
        if item is not None:
            item.status = DoneStatus.ERROR
        self.error_msg = str(error)
        self._error_tag = tag
        self._error = error
        self._completion.transition(CompletionState.ERROR)
        logger.error("%s", self.error_msg)
        self._wakeup.notify_all()
        self.on_complete_error()
        if raise_:
            raise error

    @contextmanager
    def _locked(self) -> Generator[None, None, None]:
        with self._lock:
            try:
                yield
            except UsageError as exc:
                logger.error("Usage error: %s", exc)
                raise

    # -------------------------------------------------------------------------
    # Timeout guards
    # -------------------------------------------------------------------------
    def _arm_all(self) -> None:
        now = self._time.now_ms()
        for item in self._dones:
            if item.is_resolved:
                continue
            item.arm(now)
            item.guard = self._schedule_at(item.deadline_ms, self._make_guard(item.tag))

    def _make_guard(self, tag: str) -> Action:
        def _guard() -> None:
            self._on_done_timeout(tag)

        return _guard

    def _on_done_timeout(self, tag: str) -> None:
        item = self._dones.get(tag)
        if item is None:
            msg = f"Internal error: done() timeout handler could not find done item '{tag}'"
            logger.error(msg)
            self._fail(ResolutionError(msg, tag), tag)
            return

        offset = abs(item.deadline_ms - self._time.now_ms())
        logger.debug("done('%s') timeout handler executed with %d ms offset from ideal", tag, offset)
        if offset > self._late_guard_warn_ms:
            logger.warning(
                "done('%s') timeout handler executed with time offset of %d ms (>%d ms) from required. "
                "NOTE: This is normal if paused in a debugger",
                tag,
                offset,
                self._late_guard_warn_ms,
            )
        if item.is_resolved:
            logger.debug("done('%s') timeout handler: done is resolved", tag)
            return
        self._fail(DoneTimeout(_tagged(tag, "Timeout"), tag), tag)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------
    def run(self) -> LoopResult:
        """
        Run scheduled calls in fire-time order until the queue drains or the
        loop completes.

        :return: The final result; SUCCESS or ABORTED.
        :raises UsageError: If nothing was scheduled or the loop already ran.
        :raises ResolutionError: Or whatever a scheduled call raised, when the
            loop ends in ERROR.
        """
        with self._locked():
            if self._started:
                raise UsageError("run() may only be called once per loop")
            if self._queue.is_empty():
                raise UsageError("Nothing to run: not even a single function call has been scheduled")
            self._started = True
            self._arm_all()
            self._drain()

            if self._completion.transition(CompletionState.SUCCESS):
                logger.debug("All scheduled calls executed, loop complete")
            elif self._completion.state is CompletionState.ABORTED:
                pending = [item.tag for item in self._dones.unresolved()]
                if pending:
                    logger.info("Loop aborted with unresolved done() items: %s", ", ".join(pending))
            if self._completion.state is CompletionState.ERROR and self._error is not None:
                raise self._error
            return self.result

    async def run_async(self) -> LoopResult:
        """Run the loop in a worker thread without blocking the asyncio loop."""
        aio_loop = asyncio.get_running_loop()
        return await aio_loop.run_in_executor(None, self.run)

    def _drain(self) -> None:
        while not self._completion.is_complete:
            call = self._queue.peek_earliest()
            if call is None:
                break
            self._next_wakeup_ms = call.fire_time_ms
            logger.debug("Pending events: %d", len(self._queue))

            remaining = call.fire_time_ms - self._time.now_ms()
            if remaining > 0:
                logger.debug("Sleeping %d ms before next event", remaining)
                self._park(remaining)
                if self._completion.is_complete:
                    break
                # Other threads may have changed the queue while parked
                call = self._queue.peek_earliest()
                if call is None:
                    break
                if call.fire_time_ms - self._time.now_ms() > self._wake_tolerance_ms:
                    logger.debug("Woke up before next event time, will sleep again")
                    continue
            else:
                logger.debug("Negative or zero time to next event: %d", remaining)

            call = self._queue.pop_earliest()
            try:
                call()
            except Exception as exc:
                self._fail(exc, raise_=False)
                break

    def _park(self, ms: int) -> None:
        self._parked = True
        try:
            self._time.wait(self._wakeup, ms)
        finally:
            self._parked = False

    def __repr__(self) -> str:
        return f"<EventLoop state={self._completion.state.name} pending={len(self._queue)} dones={len(self._dones)}>"
