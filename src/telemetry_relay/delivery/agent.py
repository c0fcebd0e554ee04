"""
Module: agent.py
Description: Delivery agent orchestrating queue, transport, retries and durable buffer.

Producers call submit_error() and submit_breadcrumbs(); nothing raises
back into them. Batches flushed from the queue are sent once; a failed
batch is saved to the durable buffer and scheduled in the retry ledger,
whose outcomes are reported back to the durable buffer.

Key Components:
- DeliveryAgent: Entry point wiring every delivery component together

Dependencies: httpx (via transport), structlog, typing
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from telemetry_relay.buffer.persistent import DurableBuffer
from telemetry_relay.config.delivery import DeliveryConfiguration, DeliveryOptions
from telemetry_relay.config.settings import RelaySettings, get_settings
from telemetry_relay.models.item import ItemKind, QueueItem
from telemetry_relay.models.record import AgentStats, BufferStats
from telemetry_relay.serialization import ReferenceSafeSerializer
from telemetry_relay.storage.config import StoreConfig
from telemetry_relay.utils.logger import configure_logging, get_logger
from telemetry_relay.delivery.queue import BatchQueue
from telemetry_relay.delivery.retry import RetryLedger
from telemetry_relay.delivery.scheduler import AsyncioScheduler, Scheduler
from telemetry_relay.delivery.transport import HttpTransport

logger = get_logger(__name__)


class DeliveryAgent:
    """
    Best-effort delivery of errors and breadcrumbs to the collector.

    Every collaborator can be injected; anything left out is built from
    the shared configuration.

    Attributes:
        config: Shared delivery configuration
        scheduler: Clock and timers
        serializer: Reference-safe serializer
        transport: HTTP transport
        buffer: Durable buffer for failed batches
        retry_ledger: In-memory retry schedule
        queue: In-memory batch queue
    """

    def __init__(
        self,
        config: Optional[DeliveryConfiguration] = None,
        scheduler: Optional[Scheduler] = None,
        transport: Optional[HttpTransport] = None,
        buffer: Optional[DurableBuffer] = None,
        serializer: Optional[ReferenceSafeSerializer] = None,
        store_config: Optional[StoreConfig] = None
    ):
        self.config = config or DeliveryConfiguration()
        self.scheduler = scheduler or AsyncioScheduler()
        self.serializer = serializer or ReferenceSafeSerializer()
        self.transport = transport or HttpTransport(self.config, self.serializer)
        self.buffer = buffer or DurableBuffer(
            self.config,
            store_config=store_config,
            serializer=self.serializer
        )
        self.retry_ledger = RetryLedger(
            self.config,
            self.scheduler,
            sender=self.transport,
            durable=self.buffer
        )
        self.queue = BatchQueue(self.config, self.scheduler, self)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[RelaySettings] = None,
        scheduler: Optional[Scheduler] = None
    ) -> "DeliveryAgent":
        """
        Build an agent from environment settings.

        Applies the settings' log level and durable buffer location.
        The agent is enabled only if the settings name an endpoint.
        """
        settings = settings or get_settings()
        configure_logging(settings.log_level)

        return cls(
            config=DeliveryConfiguration.from_settings(settings),
            scheduler=scheduler,
            store_config=StoreConfig.from_settings(settings)
        )

    def configure(
        self,
        options: Union[DeliveryOptions, Mapping[str, Any], None] = None,
        **overrides: Any
    ) -> bool:
        """
        Apply delivery options.

        Returns:
            True if the agent is enabled afterwards
        """
        return self.config.configure(options, **overrides)

    async def start(self) -> None:
        """Open the durable buffer and reschedule batches left from a previous run."""
        if await self.buffer.initialize():
            await self.retry_failed_items()

    async def submit_error(self, payload: Any, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Queue an error report.

        Args:
            payload: Error data, any value graph
            context: Optional context stored under the payload's "context" key
        """
        if not self.config.is_agent_enabled():
            logger.warning("Delivery agent not configured, error not sent")
            return

        try:
            data = self._with_context(payload, context)
            await self._enqueue(ItemKind.ERROR, data)

        except Exception as e:
            logger.error(
                "Could not submit error",
                error=str(e),
                error_type=type(e).__name__
            )

    async def submit_breadcrumbs(self, breadcrumbs: List[Any]) -> None:
        """Queue a breadcrumb batch when breadcrumb forwarding is on."""
        if (
            not self.config.is_agent_enabled()
            or not self.config.should_send_breadcrumbs()
            or not breadcrumbs
        ):
            return

        try:
            await self._enqueue(ItemKind.BREADCRUMBS, list(breadcrumbs))

        except Exception as e:
            logger.error(
                "Could not submit breadcrumbs",
                breadcrumbs=len(breadcrumbs),
                error=str(e),
                error_type=type(e).__name__
            )

    async def handle_batch(self, items: List[QueueItem]) -> None:
        """
        Send a batch flushed from the queue.

        On failure the batch is saved to the durable buffer and scheduled
        for retry with the saved record's id. A batch that fails after the
        agent was disabled is only saved.
        """
        try:
            await self.transport.send(items)

        except Exception as e:
            logger.warning(
                "Batch delivery failed, scheduling retry",
                items=len(items),
                error=str(e),
                error_type=type(e).__name__
            )
            durable_id = await self.buffer.save(items)
            if not self.config.is_agent_enabled():
                logger.info("Agent disabled, batch kept for the next run", durable_id=durable_id)
                return
            self.retry_ledger.schedule(items, attempt=1, durable_id=durable_id)

    async def flush(self) -> None:
        await self.queue.flush()

    async def force_flush(self) -> None:
        """Flush the queue, reload stored batches and send every due retry."""
        await self.flush()
        await self.retry_failed_items()
        if not self.retry_ledger.is_empty():
            await self.retry_ledger.process_ready()

    async def retry_failed_items(self) -> None:
        """Move durable records that the ledger does not know about yet into it."""
        await self.buffer.retry_all(self._schedule_durable)

    async def _schedule_durable(self, items: List[QueueItem], attempt: int, record_id: int) -> None:
        if not self.config.is_agent_enabled() or self.retry_ledger.has_durable(record_id):
            return
        self.retry_ledger.schedule(items, attempt=attempt, durable_id=record_id)

    def disable(self) -> None:
        """
        Stop delivery and drop in-memory state.

        Durable records are kept for the next run. Safe to call repeatedly.
        """
        self.config.disable()
        self.queue.clear()
        self.retry_ledger.clear()
        logger.info("Delivery agent disabled")

    def get_stats(self) -> AgentStats:
        return AgentStats(
            queue_length=self.queue.size(),
            retry_queue_length=self.retry_ledger.size(),
            is_enabled=self.config.is_agent_enabled(),
            use_persistent_buffer=self.config.use_persistent_buffer,
            max_retries=self.config.max_retries
        )

    async def get_buffer_stats(self) -> BufferStats:
        return await self.buffer.stats()

    async def shutdown(self) -> None:
        """Flush pending items and close the durable store."""
        await self.flush()
        if isinstance(self.scheduler, AsyncioScheduler):
            await self.scheduler.drain()
        self.buffer.close()
        logger.info("Delivery agent shut down", pending_retries=self.retry_ledger.size())

    async def _enqueue(self, kind: ItemKind, data: Any) -> None:
        payload = self.transport.apply_encryption(data)
        await self.queue.add(QueueItem(kind=kind, payload=payload))

    @staticmethod
    def _with_context(payload: Any, context: Optional[Dict[str, Any]]) -> Any:
        if not context:
            return payload
        if isinstance(payload, Mapping):
            return {**payload, "context": context}
        return {"error": payload, "context": context}
