"""
Module: test_scheduler.py
Description: Unit tests for the asyncio-backed scheduler.
"""

import asyncio

import pytest

from telemetry_relay.delivery import scheduler as scheduler_module
from telemetry_relay.delivery.scheduler import AsyncioScheduler


class TestAsyncioScheduler:
    """Test cases for AsyncioScheduler."""

    def test_now_uses_monotonic_milliseconds(self, monkeypatch):
        monkeypatch.setattr(scheduler_module.time, "monotonic", lambda: 12.5)

        assert AsyncioScheduler().now() == 12500.0

    def test_now_ignores_wall_clock_jumps(self, monkeypatch):
        scheduler = AsyncioScheduler()
        before = scheduler.now()

        monkeypatch.setattr(scheduler_module.time, "time", lambda: 0.0)

        assert scheduler.now() >= before

    @pytest.mark.asyncio
    async def test_runs_plain_callback(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        scheduler.call_later(1, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_runs_coroutine_callback(self):
        scheduler = AsyncioScheduler()
        calls = []

        async def callback():
            calls.append("ran")

        scheduler.call_later(0, callback)
        await asyncio.sleep(0.01)
        await scheduler.drain()

        assert calls == ["ran"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        scheduler = AsyncioScheduler()
        calls = []

        handle = scheduler.call_later(5, lambda: calls.append("ran"))
        handle.cancel()
        await asyncio.sleep(0.02)

        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_callbacks_are_contained(self):
        scheduler = AsyncioScheduler()

        async def failing():
            raise RuntimeError("boom")

        scheduler.call_later(0, failing)
        scheduler.call_later(0, lambda: 1 / 0)
        await asyncio.sleep(0.01)
        await scheduler.drain()
