"""
Module: interfaces.py
Description: Seams between the agent, queue, retry ledger and durable buffer.

Each component receives its collaborators through these interfaces at
construction time.
"""

from typing import Any, List, Protocol

from telemetry_relay.models.item import QueueItem


class Sender(Protocol):
    """Delivers one batch; raises on failure."""

    async def send(self, items: List[QueueItem]) -> Any:
        ...


class BatchSink(Protocol):
    """Receives every batch the queue flushes."""

    async def handle_batch(self, items: List[QueueItem]) -> None:
        ...


class DurableSink(Protocol):
    """Durable-side bookkeeping driven by retry outcomes."""

    async def remove(self, record_id: int) -> None:
        ...

    async def record_failure(self, record_id: int) -> None:
        ...

    async def discard(self, record_id: int) -> None:
        ...
