"""
Package: buffer
Description: Durable buffer for batches that failed delivery.

Provides the DurableBuffer coordinator and the retry bookkeeping that
replays persisted batches after a restart.
"""

from telemetry_relay.buffer.persistent import DurableBuffer
from telemetry_relay.buffer.retry_logic import RetryLedgerManager

__all__ = [
    "DurableBuffer",
    "RetryLedgerManager",
]
