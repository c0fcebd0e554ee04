"""
Module: conftest.py
Description: Shared pytest fixtures for telemetry-relay tests.

Provides a manual scheduler for driving timers deterministically, test
settings that ignore the environment, delivery configurations, and a
sqlite durable store placed in pytest's tmp_path.
"""

import inspect

import pytest
from pydantic import Field
from pydantic_settings import SettingsConfigDict

from telemetry_relay.buffer.persistent import DurableBuffer
from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.config.settings import RelaySettings
from telemetry_relay.models.item import ItemKind, QueueItem
from telemetry_relay.storage.config import StoreConfig
from telemetry_relay.storage.database import DurableStore

COLLECTOR_URL = "https://collector.example.com/ingest"


class TestSettings(RelaySettings):
    """Test settings that don't require environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_RELAY_TEST_",
        env_file=None,  # Disable .env file loading for tests
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = Field(default="telemetry-relay-test")
    log_level: str = Field(default="DEBUG")
    endpoint: str = Field(default=COLLECTOR_URL)
    batch_size: int = Field(default=2)
    batch_timeout: float = Field(default=5000)
    max_retries: int = Field(default=3)
    base_delay: float = Field(default=1000)
    max_delay: float = Field(default=30000)
    request_timeout: float = Field(default=5.0)
    use_persistent_buffer: bool = Field(default=True)
    buffer_table_name: str = Field(default="failed_items")
    buffer_schema_version: int = Field(default=1)


class ManualTimer:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Scheduler whose clock only moves when a test calls advance().

    Timers that come due during advance() run in deadline order; callbacks
    returning coroutines are awaited before the next timer fires.
    """

    def __init__(self, start: float = 0.0):
        self.current = start
        self.timers = []

    def now(self) -> float:
        return self.current

    def call_later(self, delay_ms: float, callback) -> ManualTimer:
        timer = ManualTimer(self.current + max(delay_ms, 0.0), callback)
        self.timers.append(timer)
        return timer

    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def advance(self, ms: float) -> None:
        target = self.current + ms
        while True:
            due = sorted((t for t in self.pending() if t.due <= target), key=lambda t: t.due)
            if not due:
                break

            timer = due[0]
            self.current = max(self.current, timer.due)
            timer.fired = True
            result = timer.callback()
            if inspect.isawaitable(result):
                await result

        self.current = target


@pytest.fixture
def test_settings(tmp_path):
    """
    Provide test configuration settings.

    Disables environment variable loading for predictable tests and
    points the durable buffer at a throwaway sqlite file.
    """
    return TestSettings(buffer_db_path=str(tmp_path / "buffer.sqlite3"))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def delivery_config():
    """Enabled configuration: batches of 2, 3 attempts, 1s base delay."""
    config = DeliveryConfiguration()
    config.configure(
        endpoint=COLLECTOR_URL,
        batch_size=2,
        batch_timeout=5000,
        max_retries=3,
        base_delay=1000,
        max_delay=30000,
        use_persistent_buffer=True
    )
    return config


@pytest.fixture
def store_config(tmp_path):
    return StoreConfig(db_path=str(tmp_path / "buffer.sqlite3"))


@pytest.fixture
def durable_store(store_config):
    """Initialized sqlite durable store, closed after the test."""
    store = DurableStore(store_config)
    assert store.connection_manager.initialize().success
    yield store
    if store.is_available():
        store.close()


@pytest.fixture
def durable_buffer(delivery_config, durable_store):
    return DurableBuffer(delivery_config, store=durable_store)


@pytest.fixture
def sample_error():
    """Provide a typical error payload."""
    return {
        "type": "TypeError",
        "message": "Cannot read properties of undefined (reading 'id')",
        "source": "app.js",
        "line": 42,
    }


@pytest.fixture
def make_items():
    """Factory for numbered error items."""
    def _make(count: int, start: int = 0):
        return [
            QueueItem(kind=ItemKind.ERROR, payload={"n": start + i})
            for i in range(count)
        ]
    return _make
