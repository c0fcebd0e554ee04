"""
Module: persistent.py
Description: Durable buffer coordinator.

Composes the sqlite store, the serializing adapter and the retry logic
behind the use_persistent_buffer flag. Batches that failed delivery are
saved here so they survive a restart; on the next start they are fed
back into the in-memory retry ledger.

Nothing in this class raises: store failures are logged, and a disabled
or unavailable buffer turns every call into a no-op.
"""

from typing import List, Optional

from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.errors import StoreOperationError
from telemetry_relay.models.item import QueueItem
from telemetry_relay.models.record import BufferStats, DurableRecord
from telemetry_relay.serialization import ReferenceSafeSerializer
from telemetry_relay.storage.config import StoreConfig
from telemetry_relay.storage.database import DurableStore
from telemetry_relay.storage.serialization import SerializedRecordStore
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.buffer.retry_logic import RecordSendFn, RetryLedgerManager

logger = get_logger(__name__)


class DurableBuffer:
    """
    Feature-flagged durable storage for failed batches.

    Attributes:
        config: Shared delivery configuration
        store: sqlite record table
        records: Serializing adapter over the store
        retry_logic: Retry bookkeeping for stored records
    """

    def __init__(
        self,
        config: DeliveryConfiguration,
        store_config: Optional[StoreConfig] = None,
        serializer: Optional[ReferenceSafeSerializer] = None,
        store: Optional[DurableStore] = None
    ):
        self.config = config
        self.store = store or DurableStore(store_config or StoreConfig())
        self.records = SerializedRecordStore(self.store, serializer)
        self.retry_logic = RetryLedgerManager(self.records, config)

    async def initialize(self) -> bool:
        """
        Open the store when the durable buffer is enabled.

        Returns:
            True if the buffer is usable
        """
        if not self.config.use_persistent_buffer:
            logger.debug("Durable buffer disabled by configuration")
            return False

        if self.store.is_available():
            return True

        success = await self.store.initialize()
        if success:
            logger.info("Durable buffer initialized", db_path=self.store.config.db_path)
        return success

    def is_available(self) -> bool:
        return self.config.use_persistent_buffer and self.store.is_available()

    async def save(self, items: List[QueueItem]) -> Optional[int]:
        """
        Persist a failed batch.

        Returns:
            Record handle, or None when disabled, unavailable or on failure
        """
        if not self.is_available():
            return None

        try:
            record_id = await self.records.save(items)
        except StoreOperationError as e:
            logger.error("Could not save batch to durable buffer", items=len(items), error=str(e))
            return None

        logger.info("Batch saved to durable buffer", record_id=record_id, items=len(items))
        return record_id

    async def retrieve(self) -> List[DurableRecord]:
        """Read all readable records; unreadable ones are removed."""
        if not self.is_available():
            return []

        try:
            records = await self.records.retrieve()
        except StoreOperationError as e:
            logger.error("Could not read durable buffer", error=str(e))
            return []

        readable = []
        for record in records:
            if record.is_readable:
                readable.append(record)
            else:
                logger.error(
                    "Dropping unreadable durable record",
                    record_id=record.id,
                    error=record.deserialization_error
                )
                await self.retry_logic.remove_failed(record.id)

        return readable

    async def retrieve_by_id(self, record_id: int) -> Optional[DurableRecord]:
        if not self.is_available():
            return None

        try:
            record = await self.records.retrieve_by_id(record_id)
        except StoreOperationError as e:
            logger.error("Could not read durable record", record_id=record_id, error=str(e))
            return None

        if record is not None and not record.is_readable:
            logger.error(
                "Dropping unreadable durable record",
                record_id=record.id,
                error=record.deserialization_error
            )
            await self.retry_logic.remove_failed(record.id)
            return None

        return record

    async def remove(self, record_id: int) -> None:
        """Remove a record after its batch was delivered."""
        if not self.is_available():
            return

        await self.retry_logic.remove_failed(record_id)
        logger.debug("Delivered batch removed from durable buffer", record_id=record_id)

    async def record_failure(self, record_id: int) -> None:
        """Count one more failed delivery attempt against a record."""
        if not self.is_available():
            return

        await self.retry_logic.increment_attempt(record_id)

    async def discard(self, record_id: int) -> None:
        """Remove a record whose batch ran out of attempts."""
        if not self.is_available():
            return

        await self.retry_logic.remove_failed(record_id)
        logger.warning("Exhausted batch removed from durable buffer", record_id=record_id)

    async def retry_all(self, send_fn: RecordSendFn) -> None:
        """Offer every retryable stored batch to send_fn."""
        if not self.is_available():
            return

        await self.retry_logic.retry_all(send_fn)

    async def cleanup_expired(self) -> int:
        if not self.is_available():
            return 0

        return await self.retry_logic.cleanup_expired()

    async def stats(self) -> BufferStats:
        if not self.is_available():
            return BufferStats(is_available=False)

        stats = await self.retry_logic.get_stats()
        stats.is_available = self.is_available()
        return stats

    async def clear(self) -> None:
        if not self.is_available():
            return

        try:
            await self.records.clear()
        except StoreOperationError as e:
            logger.error("Could not clear durable buffer", error=str(e))
            return

        logger.info("Durable buffer cleared")

    def close(self) -> None:
        if self.store.is_available():
            self.store.close()
