"""
Module: test_batch_queue.py
Description: Unit tests for the in-memory batch queue.

Tests size-triggered flushes, the single batch timer, ordering and
clearing, using a manual scheduler and an AsyncMock batch sink.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from telemetry_relay.delivery.queue import BatchQueue


@pytest.fixture
def sink():
    mock = MagicMock()
    mock.handle_batch = AsyncMock()
    return mock


@pytest.fixture
def queue(delivery_config, scheduler, sink):
    return BatchQueue(delivery_config, scheduler, sink)


class TestBatchQueue:
    """Test cases for BatchQueue."""

    @pytest.mark.asyncio
    async def test_flushes_exactly_at_batch_size(self, queue, sink, make_items):
        items = make_items(2)

        await queue.add(items[0])
        sink.handle_batch.assert_not_awaited()

        await queue.add(items[1])
        sink.handle_batch.assert_awaited_once_with(items)
        assert queue.is_empty()

    @pytest.mark.asyncio
    async def test_batches_preserve_order(self, queue, sink, make_items, delivery_config):
        delivery_config.batch_size = 3
        items = make_items(6)

        for item in items:
            await queue.add(item)

        batches = [call.args[0] for call in sink.handle_batch.await_args_list]
        assert batches == [items[:3], items[3:]]

    @pytest.mark.asyncio
    async def test_timer_flushes_partial_batch(self, queue, sink, scheduler, make_items):
        item = make_items(1)[0]

        await queue.add(item)
        await scheduler.advance(4999)
        sink.handle_batch.assert_not_awaited()

        await scheduler.advance(1)
        sink.handle_batch.assert_awaited_once_with([item])

    @pytest.mark.asyncio
    async def test_single_timer_pending(self, queue, scheduler, make_items, delivery_config):
        delivery_config.batch_size = 10

        for item in make_items(5):
            await queue.add(item)

        assert len(scheduler.pending()) == 1

    @pytest.mark.asyncio
    async def test_size_flush_cancels_timer(self, queue, scheduler, make_items):
        for item in make_items(2):
            await queue.add(item)

        assert scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_no_timer_without_batch_timeout(self, queue, scheduler, make_items, delivery_config):
        delivery_config.batch_timeout = None

        await queue.add(make_items(1)[0])

        assert scheduler.pending() == []
        assert queue.size() == 1

    @pytest.mark.asyncio
    async def test_flush_empty_queue_is_noop(self, queue, sink):
        await queue.flush()

        sink.handle_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clear(self, queue, scheduler, sink, make_items):
        await queue.add(make_items(1)[0])

        queue.clear()
        await scheduler.advance(10000)

        assert queue.size() == 0
        assert queue.get_all() == []
        sink.handle_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_all_returns_copy(self, queue, make_items):
        item = make_items(1)[0]
        await queue.add(item)

        snapshot = queue.get_all()
        snapshot.clear()

        assert queue.get_all() == [item]
