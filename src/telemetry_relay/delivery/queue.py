"""
Module: queue.py
Description: In-memory batch queue.

Collects submitted items and hands them to the batch sink either when the
queue reaches batch_size or when the batch timer fires.
"""

from typing import List, Optional

from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.models.item import QueueItem
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.delivery.interfaces import BatchSink
from telemetry_relay.delivery.scheduler import Scheduler, TimerHandle

logger = get_logger(__name__)


class BatchQueue:
    """
    FIFO of pending items with size and time based flushing.

    At most one flush timer is pending at any time.
    """

    def __init__(self, config: DeliveryConfiguration, scheduler: Scheduler, sink: BatchSink):
        self.config = config
        self.scheduler = scheduler
        self.sink = sink
        self._items: List[QueueItem] = []
        self._timer: Optional[TimerHandle] = None

    async def add(self, item: QueueItem) -> None:
        """
        Append an item.

        Flushes before returning once the queue holds batch_size items;
        otherwise arms the batch timer if a timeout is configured.
        """
        self._items.append(item)

        if len(self._items) >= self.config.batch_size:
            await self.flush()
        elif self.config.batch_timeout and self._timer is None:
            self._timer = self.scheduler.call_later(self.config.batch_timeout, self._on_timer)

    async def flush(self) -> None:
        """Hand every queued item to the sink as one batch."""
        self._cancel_timer()

        if not self._items:
            return

        batch = self._items
        self._items = []

        logger.debug("Flushing batch", items=len(batch))
        await self.sink.handle_batch(batch)

    def clear(self) -> None:
        self._cancel_timer()
        self._items = []

    def size(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def get_all(self) -> List[QueueItem]:
        return list(self._items)

    async def _on_timer(self) -> None:
        self._timer = None
        await self.flush()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
