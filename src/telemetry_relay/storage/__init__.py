"""
Module: storage
Description: Package initialization for the durable persistence layer.

This package contains the sqlite-backed durable store used by the
durable buffer:
- config: Store location, schema and host availability checks
- connection / transactions: Connection lifecycle and transaction scopes
- database: DurableStore record table
- serialization: SerializedRecordStore adapter keeping records opaque

All store operations follow async interfaces for consistency.
"""

from telemetry_relay.storage.config import StoreConfig
from telemetry_relay.storage.database import DurableStore
from telemetry_relay.storage.serialization import SerializationResult, SerializedRecordStore

__all__ = [
    "DurableStore",
    "SerializationResult",
    "SerializedRecordStore",
    "StoreConfig",
]
