"""
Module: delivery/retry.py
Description: In-memory retry ledger for failed batches.

Failed batches wait here with an exponential backoff deadline computed by
tenacity's wait_exponential. A single timer fires at the earliest
deadline and sends every due entry again.
"""

from typing import List, Optional

from tenacity import RetryCallState, wait_exponential

from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.errors import RetryExhaustedError
from telemetry_relay.models.item import QueueItem, RetryEntry
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.delivery.interfaces import DurableSink, Sender
from telemetry_relay.delivery.scheduler import Scheduler, TimerHandle

logger = get_logger(__name__)


def compute_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Delay before the given attempt: min(base_delay * 2^(attempt-1), max_delay).

    Args:
        attempt: Attempt number, starting at 1
        base_delay: First delay in ms
        max_delay: Delay cap in ms

    Returns:
        Delay in ms
    """
    wait = wait_exponential(multiplier=base_delay, min=0, max=max_delay)
    state = RetryCallState(None, None, (), {})
    state.attempt_number = max(attempt, 1)
    return wait(state)


class RetryLedger:
    """
    Batches waiting for another delivery attempt.

    Entries that are being sent are marked in flight; a second
    process_ready pass running at the same time skips them.

    Attributes:
        config: Shared delivery configuration
        scheduler: Clock and timers
        sender: Default sender for process_ready
        durable: Default durable sink for process_ready
    """

    def __init__(
        self,
        config: DeliveryConfiguration,
        scheduler: Scheduler,
        sender: Optional[Sender] = None,
        durable: Optional[DurableSink] = None
    ):
        self.config = config
        self.scheduler = scheduler
        self.sender = sender
        self.durable = durable
        self._entries: List[RetryEntry] = []
        self._timer: Optional[TimerHandle] = None
        # Bumped by clear(); passes started before a clear stop touching state.
        self._generation = 0

    def schedule(
        self,
        items: List[QueueItem],
        attempt: int = 1,
        durable_id: Optional[int] = None
    ) -> RetryEntry:
        """
        Add a failed batch.

        Args:
            items: Batch that failed delivery
            attempt: Attempt number the next send will count as
            durable_id: Durable buffer record holding the same batch

        Returns:
            The new ledger entry
        """
        entry = RetryEntry(items=list(items), attempt=attempt, durable_id=durable_id)
        entry.next_attempt_at = self._deadline(attempt)
        self._entries.append(entry)

        logger.info(
            "Batch scheduled for retry",
            items=len(items),
            attempt=attempt,
            durable_id=durable_id,
            delay_ms=entry.next_attempt_at - self.scheduler.now()
        )

        self._arm()
        return entry

    async def process_ready(
        self,
        sender: Optional[Sender] = None,
        durable: Optional[DurableSink] = None
    ) -> None:
        """
        Send every entry whose deadline has passed.

        Delivered entries are removed; failed ones are rescheduled with
        the next backoff delay, or dropped once max_retries is reached.
        If the ledger is cleared while a send is awaited, the pass stops
        without touching the durable sink or re-arming the timer.
        """
        sender = sender or self.sender
        durable = durable or self.durable
        if sender is None:
            raise ValueError("process_ready needs a sender")

        generation = self._generation
        now = self.scheduler.now()
        ready = [e for e in self._entries if e.next_attempt_at <= now and not e.in_flight]

        for entry in ready:
            if self._generation != generation:
                break

            entry.in_flight = True
            try:
                await sender.send(entry.items)

            except Exception as e:
                entry.in_flight = False
                if self._generation != generation:
                    logger.info(
                        "Retry pass abandoned, ledger was cleared",
                        durable_id=entry.durable_id,
                        error=str(e)
                    )
                    return
                await self._handle_failure(entry, e, durable)

            else:
                entry.in_flight = False
                if self._generation != generation:
                    logger.info("Retry pass abandoned, ledger was cleared", durable_id=entry.durable_id)
                    return
                self._remove(entry)
                logger.info(
                    "Retried batch delivered",
                    items=len(entry.items),
                    attempt=entry.attempt,
                    durable_id=entry.durable_id
                )
                if durable is not None and entry.durable_id is not None:
                    await durable.remove(entry.durable_id)

        if self._generation == generation:
            self._arm()

    def has_durable(self, durable_id: int) -> bool:
        return any(e.durable_id == durable_id for e in self._entries)

    def clear(self) -> None:
        self._generation += 1
        self._cancel_timer()
        self._entries = []

    def size(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def entries(self) -> List[RetryEntry]:
        return list(self._entries)

    async def _handle_failure(
        self,
        entry: RetryEntry,
        error: Exception,
        durable: Optional[DurableSink]
    ) -> None:
        if entry.attempt >= self.config.max_retries:
            self._remove(entry)
            exhausted = RetryExhaustedError(entry.attempt, cause=error)
            logger.error(
                "Batch dropped after exhausting retries",
                items=len(entry.items),
                attempts=entry.attempt,
                durable_id=entry.durable_id,
                error=str(exhausted),
                error_type=type(error).__name__
            )
            if durable is not None and entry.durable_id is not None:
                await durable.discard(entry.durable_id)
            return

        entry.attempt += 1
        entry.next_attempt_at = self._deadline(entry.attempt)
        logger.warning(
            "Batch retry failed",
            items=len(entry.items),
            next_attempt=entry.attempt,
            durable_id=entry.durable_id,
            error=str(error),
            error_type=type(error).__name__
        )
        if durable is not None and entry.durable_id is not None:
            await durable.record_failure(entry.durable_id)

    def _deadline(self, attempt: int) -> float:
        delay = compute_backoff(attempt, self.config.base_delay, self.config.max_delay)
        return self.scheduler.now() + delay

    def _remove(self, entry: RetryEntry) -> None:
        self._entries = [e for e in self._entries if e is not entry]

    def _arm(self) -> None:
        # One timer, always for the earliest pending deadline.
        self._cancel_timer()
        pending = [e.next_attempt_at for e in self._entries if not e.in_flight]
        if not pending:
            return

        delay = max(min(pending) - self.scheduler.now(), 0.0)
        self._timer = self.scheduler.call_later(delay, self._on_timer)

    async def _on_timer(self) -> None:
        self._timer = None
        if self.sender is None:
            return
        await self.process_ready()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
