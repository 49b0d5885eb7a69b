# tests/unit/runtime/test_clock.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
import time
from unittest.mock import patch

from testloop.runtime.clock import MonotonicTimeSource, VirtualTimeSource, now_ms


def test_now_ms_uses_monotonic_clock():
    with patch("time.monotonic", return_value=12.3456):
        assert now_ms() == 12345


def test_monotonic_source_waits_on_condition():
    source = MonotonicTimeSource()
    cond = threading.Condition(threading.RLock())
    start = time.monotonic()
    with cond:
        source.wait(cond, 20)
    assert time.monotonic() - start >= 0.015


def test_monotonic_source_wait_releases_lock():
    source = MonotonicTimeSource()
    lock = threading.RLock()
    cond = threading.Condition(lock)
    acquired = []

    def other():
        with lock:
            acquired.append(True)

    with cond:
        t = threading.Thread(target=other)
        t.start()
        source.wait(cond, 100)
        t.join(timeout=1.0)
    assert acquired == [True]


def test_virtual_source_advances_on_wait():
    source = VirtualTimeSource(start_ms=500)
    assert source.now_ms() == 500
    source.wait(threading.Condition(), 40)
    source.advance(10)
    assert source.now_ms() == 550
    assert source.waits == [40]
