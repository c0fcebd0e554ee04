"""
Module: record.py
Description: Durable record and statistics models.

Key Components:
- DurableRecord: Batch restored from the durable buffer
- BufferStats: Durable buffer statistics
- AgentStats: Delivery agent statistics

Dependencies: pydantic, typing
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from telemetry_relay.models.item import QueueItem


class DurableRecord(BaseModel):
    """
    Batch of items read back from the durable buffer.

    At rest the items are serializer text; this model carries the
    deserialized view. When deserialization fails, ``items`` is empty and
    ``deserialization_error`` explains why.

    Attributes:
        id: Auto-assigned store handle
        items: Queue items restored from the record
        created_at: When the batch was first persisted
        attempt: Number of failed retries recorded against the batch
        serialization_error: Error recorded when the batch was saved
        deserialization_error: Error raised while reading the batch back
    """

    id: int = Field(
        ...,
        description="Store handle"
    )
    items: List[QueueItem] = Field(
        default_factory=list,
        description="Queue items restored from the record"
    )
    created_at: str = Field(
        ...,
        description="Persistence timestamp"
    )
    attempt: int = Field(
        default=0,
        ge=0,
        description="Failed retry count"
    )
    serialization_error: Optional[str] = Field(
        default=None,
        description="Error recorded at save time"
    )
    deserialization_error: Optional[str] = Field(
        default=None,
        description="Error raised when reading the record"
    )

    @property
    def is_readable(self) -> bool:
        """True if the stored items could be deserialized."""
        return self.deserialization_error is None


class BufferStats(BaseModel):
    """Durable buffer statistics."""

    total_items: int = 0
    items_by_attempt: Dict[int, int] = Field(default_factory=dict)
    average_attempt: float = 0.0
    is_available: bool = False


class AgentStats(BaseModel):
    """Delivery agent statistics."""

    queue_length: int
    retry_queue_length: int
    is_enabled: bool
    use_persistent_buffer: bool
    max_retries: int
