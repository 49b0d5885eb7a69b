# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import os

import pytest

from testloop.core.settings import reset_settings


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "property: mark test as a property-based test")
    config.addinivalue_line("markers", "realtime: mark test as depending on wall-clock timing")


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Each test starts from default settings, unaffected by the environment."""
    for name in list(os.environ):
        if name.startswith("TESTLOOP_"):
            monkeypatch.delenv(name)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def virtual_time():
    """A virtual clock starting at 1000 ms."""
    from testloop.runtime.clock import VirtualTimeSource

    return VirtualTimeSource(start_ms=1000)


@pytest.fixture
def loop_factory(virtual_time):
    """Returns a factory building loops on the shared virtual clock."""
    from testloop.runtime.event_loop import EventLoop

    def _factory(done_specs=None, timeout_ms=None, **kwargs):
        kwargs.setdefault("time_source", virtual_time)
        kwargs.setdefault("seed", 1234)
        return EventLoop(done_specs, timeout_ms, **kwargs)

    return _factory


@pytest.fixture
def noop():
    """A scheduled action that does nothing."""
    return lambda: None

