"""
Module: test_durable_buffer.py
Description: Unit tests for the durable buffer coordinator.

Tests feature flag gating, save/retrieve, failure accounting driven by
retry outcomes, and that no method raises when the store misbehaves.
"""

import pytest
from unittest.mock import AsyncMock

from telemetry_relay.buffer.persistent import DurableBuffer
from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.errors import StoreOperationError
from telemetry_relay.storage.config import StoreConfig


class TestDurableBufferGating:
    """Buffer is inert unless enabled and initialized."""

    @pytest.mark.asyncio
    async def test_disabled_by_configuration(self, store_config, make_items):
        buffer = DurableBuffer(DeliveryConfiguration(), store_config=store_config)

        assert await buffer.initialize() is False
        assert buffer.is_available() is False
        assert await buffer.save(make_items(1)) is None
        assert await buffer.retrieve() == []

        stats = await buffer.stats()
        assert stats.is_available is False
        assert stats.total_items == 0

    @pytest.mark.asyncio
    async def test_initialize_when_enabled(self, delivery_config, store_config):
        buffer = DurableBuffer(delivery_config, store_config=store_config)

        assert await buffer.initialize() is True
        assert buffer.is_available()
        assert await buffer.initialize() is True
        buffer.close()
        assert buffer.is_available() is False

    @pytest.mark.asyncio
    async def test_unusable_location(self, delivery_config):
        buffer = DurableBuffer(delivery_config, store_config=StoreConfig(table_name="1nvalid"))

        assert await buffer.initialize() is False
        await buffer.remove(1)
        await buffer.record_failure(1)
        await buffer.discard(1)
        assert await buffer.cleanup_expired() == 0


class TestDurableBufferRecords:
    """Save, read and retry-outcome accounting."""

    @pytest.mark.asyncio
    async def test_save_and_retrieve(self, durable_buffer, make_items):
        items = make_items(2)

        record_id = await durable_buffer.save(items)
        records = await durable_buffer.retrieve()

        assert [r.id for r in records] == [record_id]
        assert records[0].items == items

    @pytest.mark.asyncio
    async def test_retrieve_drops_unreadable(self, durable_buffer, durable_store, make_items):
        bad = await durable_store.append({"items": "{broken", "attempt": 0})
        good = await durable_buffer.save(make_items(1))

        records = await durable_buffer.retrieve()

        assert [r.id for r in records] == [good]
        assert await durable_store.read_by_id(bad) is None

    @pytest.mark.asyncio
    async def test_retrieve_by_id(self, durable_buffer, make_items):
        record_id = await durable_buffer.save(make_items(1))

        assert (await durable_buffer.retrieve_by_id(record_id)).id == record_id
        assert await durable_buffer.retrieve_by_id(record_id + 100) is None

    @pytest.mark.asyncio
    async def test_record_failure_then_remove(self, durable_buffer, make_items):
        record_id = await durable_buffer.save(make_items(1))

        await durable_buffer.record_failure(record_id)
        await durable_buffer.record_failure(record_id)
        assert (await durable_buffer.retrieve_by_id(record_id)).attempt == 2

        await durable_buffer.remove(record_id)
        assert await durable_buffer.retrieve() == []

    @pytest.mark.asyncio
    async def test_discard(self, durable_buffer, make_items):
        record_id = await durable_buffer.save(make_items(1))

        await durable_buffer.discard(record_id)

        assert await durable_buffer.retrieve_by_id(record_id) is None

    @pytest.mark.asyncio
    async def test_retry_all_delegates(self, durable_buffer, make_items):
        items = make_items(1)
        record_id = await durable_buffer.save(items)
        send_fn = AsyncMock()

        await durable_buffer.retry_all(send_fn)

        send_fn.assert_awaited_once_with(items, 1, record_id)

    @pytest.mark.asyncio
    async def test_stats_and_clear(self, durable_buffer, make_items):
        await durable_buffer.save(make_items(1))
        await durable_buffer.save(make_items(1))

        stats = await durable_buffer.stats()
        assert stats.is_available is True
        assert stats.total_items == 2

        await durable_buffer.clear()
        assert (await durable_buffer.stats()).total_items == 0

    @pytest.mark.asyncio
    async def test_store_failures_are_absorbed(self, durable_buffer, make_items, monkeypatch):
        failing = AsyncMock(side_effect=StoreOperationError("disk I/O error"))
        monkeypatch.setattr(durable_buffer.store, "append", failing)
        monkeypatch.setattr(durable_buffer.store, "read_all", failing)
        monkeypatch.setattr(durable_buffer.store, "remove", failing)
        monkeypatch.setattr(durable_buffer.store, "clear", failing)

        assert await durable_buffer.save(make_items(1)) is None
        assert await durable_buffer.retrieve() == []
        await durable_buffer.remove(1)
        await durable_buffer.clear()
        assert (await durable_buffer.stats()).total_items == 0
