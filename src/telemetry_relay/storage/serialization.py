"""
Module: serialization.py
Description: Serializing adapter over the durable store.

Keeps records opaque at rest: batches are written as serializer text (or
a fallback marker when encoding fails) and turned back into QueueItems on
read. Decoding problems are reported on the returned record instead of
being raised, so one bad record cannot poison a whole read.

Key Components:
- SerializationResult: Outcome of encoding one batch
- SerializedRecordStore: save/retrieve/update/remove/clear over DurableStore
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from telemetry_relay.errors import SerializationError
from telemetry_relay.models.item import QueueItem
from telemetry_relay.models.record import DurableRecord
from telemetry_relay.serialization import ReferenceSafeSerializer
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.utils.timestamps import utc_now_iso
from telemetry_relay.storage.database import DurableStore

logger = get_logger(__name__)


@dataclass
class SerializationResult:
    success: bool
    data: str
    error: Optional[str] = None


class SerializedRecordStore:
    """
    DurableStore wrapper that serializes batches on write and restores them on read.

    Attributes:
        store: Underlying record table
        serializer: Serializer used for the items column
    """

    def __init__(self, store: DurableStore, serializer: Optional[ReferenceSafeSerializer] = None):
        self.store = store
        self.serializer = serializer or ReferenceSafeSerializer()

    def serialize(self, items: List[QueueItem]) -> SerializationResult:
        wire = [item.to_wire() for item in items]
        try:
            return SerializationResult(success=True, data=self.serializer.encode(wire))
        except SerializationError as e:
            logger.error(
                "Batch could not be serialized, storing fallback marker",
                items=len(items),
                error=str(e)
            )
            return SerializationResult(
                success=False,
                data=self.serializer.fallback_text(wire, e),
                error=str(e)
            )

    def deserialize(self, raw: Dict[str, Any]) -> DurableRecord:
        """Turn a raw store record into a DurableRecord; never raises."""
        items: List[QueueItem] = []
        error = None
        text = raw.get("items")

        if not isinstance(text, str):
            error = "record has no serialized items"
        else:
            value = self.serializer.deserialize(text)
            if value is None:
                error = "serialized items are malformed"
            elif self.serializer.is_fallback(value):
                error = f"batch was stored as a serialization fallback: {value.get('error')}"
            elif not isinstance(value, list):
                error = f"serialized items are a {type(value).__name__}, expected a list"
            else:
                try:
                    items = [QueueItem.from_wire(entry) for entry in value]
                except ValueError as e:
                    error = f"serialized items are not queue items: {e}"

        try:
            attempt = max(int(raw.get("attempt") or 0), 0)
        except (TypeError, ValueError):
            attempt = 0

        return DurableRecord(
            id=raw["id"],
            items=items if error is None else [],
            created_at=raw.get("created_at") or "",
            attempt=attempt,
            serialization_error=raw.get("serialization_error"),
            deserialization_error=error
        )

    async def save(self, items: List[QueueItem]) -> Optional[int]:
        """
        Persist a batch with attempt = 0.

        Returns:
            The record handle, or None if the store is unavailable
        """
        result = self.serialize(items)
        return await self.store.append({
            "items": result.data,
            "created_at": utc_now_iso(),
            "attempt": 0,
            "serialization_error": result.error,
        })

    async def retrieve(self) -> List[DurableRecord]:
        return [self.deserialize(raw) for raw in await self.store.read_all()]

    async def retrieve_by_id(self, record_id: int) -> Optional[DurableRecord]:
        raw = await self.store.read_by_id(record_id)
        return self.deserialize(raw) if raw is not None else None

    async def update(self, record_id: int, changes: Dict[str, Any]) -> None:
        await self.store.update(record_id, changes)

    async def remove(self, record_id: int) -> None:
        await self.store.remove(record_id)

    async def clear(self) -> None:
        await self.store.clear()
