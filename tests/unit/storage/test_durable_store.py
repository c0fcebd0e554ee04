"""
Module: test_durable_store.py
Description: Unit tests for the sqlite durable store.

Tests configuration validation, host availability checks, connection
lifecycle and the record operations (append, read, update, remove,
clear) against a real sqlite file in tmp_path.
"""

import sqlite3
import threading

import pytest

from telemetry_relay.errors import StoreOperationError, StoreUnavailableError
from telemetry_relay.storage.config import MEMORY_PATH, StoreConfig
from telemetry_relay.storage.database import DurableStore


class TestStoreConfig:
    """Test cases for StoreConfig validation and availability."""

    def test_defaults(self):
        config = StoreConfig()

        assert config.db_path == "telemetry_relay_buffer.sqlite3"
        assert config.table_name == "failed_items"
        assert config.version == 1
        assert config.validate().is_valid

    def test_invalid_values(self):
        result = StoreConfig(db_path="", version=0, table_name="bad name;").validate()

        assert result.is_valid is False
        assert len(result.errors) == 3

    def test_memory_path_is_available(self):
        assert StoreConfig(db_path=MEMORY_PATH).check_availability().is_available

    def test_missing_directory_is_created(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "buffer.sqlite3"

        result = StoreConfig(db_path=str(path)).check_availability()

        assert result.is_available
        assert path.parent.is_dir()

    def test_from_settings(self, test_settings):
        config = StoreConfig.from_settings(test_settings)

        assert config.db_path == test_settings.buffer_db_path
        assert config.table_name == "failed_items"

    def test_create_table_sql(self):
        sql = StoreConfig(table_name="pending").create_table_sql()

        assert "CREATE TABLE IF NOT EXISTS pending" in sql


class TestDurableStoreLifecycle:
    """Test cases for initialization and closing."""

    @pytest.mark.asyncio
    async def test_initialize_creates_table_and_version(self, store_config):
        store = DurableStore(StoreConfig(db_path=store_config.db_path, version=3))

        assert await store.initialize() is True
        assert store.is_available()
        store.close()

        connection = sqlite3.connect(store_config.db_path)
        try:
            tables = [row[0] for row in connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )]
            version = connection.execute("PRAGMA user_version").fetchone()[0]
        finally:
            connection.close()

        assert "failed_items" in tables
        assert version == 3

    @pytest.mark.asyncio
    async def test_initialize_with_invalid_config(self):
        store = DurableStore(StoreConfig(table_name="drop table"))

        assert await store.initialize() is False
        assert not store.is_available()

    @pytest.mark.asyncio
    async def test_unavailable_store_is_a_no_op(self):
        store = DurableStore(StoreConfig(db_path=MEMORY_PATH))

        assert await store.append({"items": "[]"}) is None
        assert await store.read_all() == []
        assert await store.read_by_id(1) is None
        await store.update(1, {"attempt": 1})
        await store.remove(1)
        await store.clear()

    def test_transactions_require_connection(self):
        store = DurableStore(StoreConfig(db_path=MEMORY_PATH))

        with pytest.raises(StoreUnavailableError, match="Database not available"):
            store.transactions.ensure_available()

    def test_close_without_connection(self):
        store = DurableStore(StoreConfig(db_path=MEMORY_PATH))

        assert store.close() is False

    def test_status(self, durable_store):
        status = durable_store.transactions.status()

        assert status["is_available"] is True
        assert status["table_name"] == "failed_items"
        assert status["timestamp"].endswith("Z")


class TestDurableStoreRecords:
    """Test cases for record operations."""

    @pytest.mark.asyncio
    async def test_append_assigns_increasing_ids(self, durable_store):
        first = await durable_store.append({"items": "a", "attempt": 0})
        second = await durable_store.append({"items": "b", "attempt": 0})

        assert isinstance(first, int)
        assert second > first

    @pytest.mark.asyncio
    async def test_append_ignores_caller_id(self, durable_store):
        record_id = await durable_store.append({"id": 999, "items": "a"})

        record = await durable_store.read_by_id(record_id)
        assert record == {"items": "a", "id": record_id}

    @pytest.mark.asyncio
    async def test_read_all_in_key_order(self, durable_store):
        ids = [await durable_store.append({"n": n}) for n in range(3)]

        records = await durable_store.read_all()

        assert [r["id"] for r in records] == ids
        assert [r["n"] for r in records] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_read_missing_record(self, durable_store):
        assert await durable_store.read_by_id(12345) is None

    @pytest.mark.asyncio
    async def test_update_merges_changes(self, durable_store):
        record_id = await durable_store.append({"items": "a", "attempt": 0})

        await durable_store.update(record_id, {"attempt": 2})

        assert await durable_store.read_by_id(record_id) == {
            "items": "a",
            "attempt": 2,
            "id": record_id,
        }

    @pytest.mark.asyncio
    async def test_update_missing_record_raises(self, durable_store):
        with pytest.raises(StoreOperationError, match="not found"):
            await durable_store.update(777, {"attempt": 1})

    @pytest.mark.asyncio
    async def test_append_unencodable_record_raises(self, durable_store):
        with pytest.raises(StoreOperationError):
            await durable_store.append({"items": object()})

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, durable_store):
        keep = await durable_store.append({"n": 1})
        drop = await durable_store.append({"n": 2})

        await durable_store.remove(drop)
        await durable_store.remove(drop)  # missing record is not an error

        assert [r["id"] for r in await durable_store.read_all()] == [keep]

        await durable_store.clear()
        assert await durable_store.read_all() == []

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, store_config):
        store = DurableStore(store_config)
        await store.initialize()
        record_id = await store.append({"items": "persisted"})
        store.close()

        reopened = DurableStore(store_config)
        await reopened.initialize()
        try:
            assert await reopened.read_by_id(record_id) == {"items": "persisted", "id": record_id}
        finally:
            reopened.close()

    @pytest.mark.asyncio
    async def test_corrupt_row_reads_as_empty(self, durable_store):
        connection = durable_store.connection_manager.get_connection()
        with connection:
            cursor = connection.execute("INSERT INTO failed_items (data) VALUES ('{broken')")
        row_id = cursor.lastrowid

        assert await durable_store.read_by_id(row_id) == {"id": row_id}

    @pytest.mark.asyncio
    async def test_operations_run_off_the_event_loop_thread(self, durable_store, monkeypatch):
        threads = []
        read_all = durable_store._read_all

        def recording_read_all():
            threads.append(threading.get_ident())
            return read_all()

        monkeypatch.setattr(durable_store, "_read_all", recording_read_all)
        await durable_store.append({"items": "[]"})

        assert await durable_store.read_all() == [{"items": "[]", "id": 1}]
        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_close_stops_worker_thread(self, store_config):
        store = DurableStore(store_config)
        assert await store.initialize()
        assert store._executor is not None

        assert store.close() is True
        assert store._executor is None
        assert store.is_available() is False
