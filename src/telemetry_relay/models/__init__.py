"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the delivery engine:
- QueueItem / ItemKind: Submitted items
- RetryEntry: In-memory retry bookkeeping
- DurableRecord: Batches restored from the durable buffer
- BufferStats / AgentStats: Statistics snapshots

All models are exported here for convenient importing.
"""

from telemetry_relay.models.item import ItemKind, QueueItem, RetryEntry
from telemetry_relay.models.record import AgentStats, BufferStats, DurableRecord

__all__ = [
    "AgentStats",
    "BufferStats",
    "DurableRecord",
    "ItemKind",
    "QueueItem",
    "RetryEntry",
]
