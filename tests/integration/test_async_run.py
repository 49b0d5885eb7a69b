# tests/integration/test_async_run.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio

import pytest

from testloop import DoneTimeout, EventLoop

pytestmark = pytest.mark.realtime


@pytest.mark.asyncio
async def test_run_async_resolved_by_coroutine(noop):
    loop = EventLoop(["net"], timeout_ms=1000)
    loop.sched_call(noop, 300, 0)

    async def fake_io():
        await asyncio.sleep(0.05)
        loop.done("net")

    task = asyncio.create_task(fake_io())
    result = await loop.run_async()
    await task
    assert result.succeeded


@pytest.mark.asyncio
async def test_run_async_propagates_timeout(noop):
    loop = EventLoop(["net"], timeout_ms=50)
    loop.sched_call(noop, 1000, 0)
    with pytest.raises(DoneTimeout):
        await loop.run_async()
    assert loop.result.error_tag == "net"
