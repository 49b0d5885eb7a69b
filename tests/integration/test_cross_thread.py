# tests/integration/test_cross_thread.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
import time

import pytest

from testloop import CompletionState, EventLoop, ResolutionError

pytestmark = pytest.mark.realtime


def _start(target) -> threading.Thread:
    t = threading.Thread(target=target, daemon=True)
    t.start()
    return t


def test_done_from_background_thread(noop):
    loop = EventLoop(["bg"], timeout_ms=1000)
    loop.sched_call(noop, 200, 0)

    def worker():
        time.sleep(0.05)
        loop.done("bg")

    t = _start(worker)
    result = loop.run()
    t.join(timeout=1.0)
    assert result.succeeded
    assert loop.pending_calls == 0


def test_error_from_background_thread_stops_loop(noop):
    loop = EventLoop(["bg"], timeout_ms=5000)
    loop.sched_call(noop, 2000, 0)
    raised = []

    def worker():
        time.sleep(0.05)
        try:
            loop.error("bg", "worker failed")
        except ResolutionError as exc:
            raised.append(exc)

    t = _start(worker)
    start = time.monotonic()
    with pytest.raises(ResolutionError) as excinfo:
        loop.run()
    t.join(timeout=1.0)
    assert time.monotonic() - start < 1.0
    assert raised and excinfo.value is raised[0]
    assert loop.result.error_msg == "done('bg'): worker failed"


def test_abort_from_background_thread(noop):
    loop = EventLoop(timeout_ms=5000)
    loop.sched_call(noop, 2000, 0)

    def worker():
        time.sleep(0.05)
        loop.abort()

    t = _start(worker)
    start = time.monotonic()
    result = loop.run()
    t.join(timeout=1.0)
    assert result.state is CompletionState.ABORTED
    assert time.monotonic() - start < 1.0


def test_foreign_calls_wait_while_callback_runs(noop):
    loop = EventLoop(["x"], timeout_ms=2000)
    stamps = {}

    def worker():
        loop.done("x")
        stamps["done"] = time.monotonic()

    def busy():
        _start(worker)
        time.sleep(0.1)
        stamps["callback_end"] = time.monotonic()

    loop.sched_call(busy, 10, 0)
    loop.sched_call(noop, 300, 0)
    assert loop.run().succeeded
    assert stamps["done"] >= stamps["callback_end"]


def test_sched_call_from_thread_wakes_parked_loop(noop):
    loop = EventLoop([])
    loop.sched_call(noop, 3000, 0)
    fired = []

    def on_fire():
        fired.append(time.monotonic())
        loop.abort()

    def worker():
        time.sleep(0.05)
        loop.sched_call(on_fire, 10, 0)

    t = _start(worker)
    start = time.monotonic()
    result = loop.run()
    t.join(timeout=1.0)
    assert result.state is CompletionState.ABORTED
    assert fired and fired[0] - start < 1.0
