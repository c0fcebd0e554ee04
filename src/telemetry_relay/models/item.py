"""
Module: item.py
Description: Queue item and retry entry models for the delivery engine.

Defines the unit of work submitted by producers and the bookkeeping
record used while a failed batch waits for its next delivery attempt.

Key Components:
- ItemKind: Enum of submitted item kinds
- QueueItem: Immutable submitted item with wire conversion helpers
- RetryEntry: Mutable in-memory retry bookkeeping

Dependencies: pydantic, dataclasses, typing
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from telemetry_relay.utils.timestamps import utc_now_iso


class ItemKind(str, Enum):
    """Kinds of items producers can submit."""

    ERROR = "error"
    BREADCRUMBS = "breadcrumbs"


class QueueItem(BaseModel):
    """
    Item waiting in the batch queue.

    The payload is kept by reference, so it may be any object graph,
    including cyclic ones. It is only turned into text by the serializer
    when a batch is transported or persisted.

    Attributes:
        kind: Error or breadcrumb batch
        payload: Producer supplied data (possibly already encrypted)
        created_at: ISO 8601 UTC submission time
    """

    model_config = ConfigDict(frozen=True)

    kind: ItemKind = Field(
        ...,
        description="Submitted item kind"
    )
    payload: Any = Field(
        default=None,
        description="Item payload, any value graph"
    )
    created_at: str = Field(
        default_factory=utc_now_iso,
        description="Submission timestamp"
    )

    def to_wire(self) -> Dict[str, Any]:
        """Return the envelope form sent to the collector."""
        return {
            "type": self.kind.value,
            "data": self.payload,
            "timestamp": self.created_at,
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "QueueItem":
        """
        Rebuild an item from its envelope form.

        Raises:
            ValueError: If the data is not a wire item
        """
        if not isinstance(data, dict) or "type" not in data:
            raise ValueError("wire item must be a dict with a 'type' key")

        return cls(
            kind=ItemKind(data["type"]),
            payload=data.get("data"),
            created_at=data.get("timestamp") or utc_now_iso()
        )


@dataclass(eq=False)
class RetryEntry:
    """
    Batch waiting in the in-memory retry ledger.

    Entries compare by identity: two entries holding equal items are
    still distinct retries.
    """

    items: List[QueueItem]
    attempt: int = 1
    durable_id: Optional[int] = None
    next_attempt_at: float = 0.0
    in_flight: bool = field(default=False)
