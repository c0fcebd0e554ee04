"""
Module: retry_logic.py
Description: Retry bookkeeping for batches held in the durable buffer.

Walks persisted records, hands retryable ones back to a send function,
and keeps each record's attempt counter current. Records that cannot be
read, or that have used up their attempts, are removed.
"""

from typing import Awaitable, Callable, List

from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.errors import StoreOperationError
from telemetry_relay.models.item import QueueItem
from telemetry_relay.models.record import BufferStats
from telemetry_relay.storage.serialization import SerializedRecordStore
from telemetry_relay.utils.logger import get_logger

logger = get_logger(__name__)

# send_fn(items, attempt, record_id)
RecordSendFn = Callable[[List[QueueItem], int, int], Awaitable[None]]


class RetryLedgerManager:
    """Retry and cleanup logic for durable records."""

    def __init__(self, records: SerializedRecordStore, config: DeliveryConfiguration):
        self.records = records
        self.config = config

    async def retry_all(self, send_fn: RecordSendFn) -> None:
        """
        Offer every retryable record to send_fn.

        Each record below max_retries is passed as
        ``send_fn(items, attempt + 1, record_id)``. The caller removes the
        record once delivery succeeds; if send_fn raises, the record's
        attempt counter is incremented instead. Unreadable records and
        records at or past max_retries are removed.

        Args:
            send_fn: Async callable receiving items, attempt and record id
        """
        try:
            records = await self.records.retrieve()
        except StoreOperationError as e:
            logger.error("Could not read durable buffer for retry", error=str(e))
            return

        for record in records:
            if not record.is_readable:
                logger.error(
                    "Dropping unreadable durable record",
                    record_id=record.id,
                    error=record.deserialization_error
                )
                await self.remove_failed(record.id)
                continue

            if record.attempt >= self.config.max_retries:
                logger.warning(
                    "Durable record exceeded max retries, removing",
                    record_id=record.id,
                    attempt=record.attempt,
                    max_retries=self.config.max_retries
                )
                await self.remove_failed(record.id)
                continue

            try:
                await send_fn(record.items, record.attempt + 1, record.id)

            except Exception as e:
                logger.warning(
                    "Durable record retry failed",
                    record_id=record.id,
                    attempt=record.attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__
                )
                await self.increment_attempt(record.id)

    async def increment_attempt(self, record_id: int) -> None:
        """Add one to a record's attempt counter."""
        try:
            record = await self.records.retrieve_by_id(record_id)
            if record is not None:
                await self.records.update(record_id, {"attempt": record.attempt + 1})

        except StoreOperationError as e:
            logger.error(
                "Could not increment durable record attempt",
                record_id=record_id,
                error=str(e)
            )

    async def remove_failed(self, record_id: int) -> None:
        try:
            await self.records.remove(record_id)
        except StoreOperationError as e:
            logger.error("Could not remove durable record", record_id=record_id, error=str(e))

    async def cleanup_expired(self) -> int:
        """
        Remove records at or past max_retries.

        Returns:
            Number of records removed
        """
        try:
            records = await self.records.retrieve()
        except StoreOperationError as e:
            logger.error("Could not read durable buffer for cleanup", error=str(e))
            return 0

        expired = [r for r in records if r.attempt >= self.config.max_retries]
        for record in expired:
            await self.remove_failed(record.id)
            logger.warning(
                "Durable record removed after exceeding max retries",
                record_id=record.id,
                attempt=record.attempt
            )

        if expired:
            logger.info("Durable buffer cleanup complete", removed=len(expired))

        return len(expired)

    async def get_stats(self) -> BufferStats:
        """Count records and summarise their attempt counters."""
        try:
            records = await self.records.retrieve()
        except StoreOperationError as e:
            logger.error("Could not read durable buffer stats", error=str(e))
            return BufferStats()

        stats = BufferStats(total_items=len(records))
        if records:
            stats.average_attempt = sum(r.attempt for r in records) / len(records)
            for record in records:
                stats.items_by_attempt[record.attempt] = stats.items_by_attempt.get(record.attempt, 0) + 1

        return stats
