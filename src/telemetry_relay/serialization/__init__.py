"""
Package: serialization
Description: Reference-safe serialization for payloads and durable records.

Provides a serializer that turns arbitrary object graphs into reversible
JSON text, tolerating cycles, shared references and unserializable values.
"""

from telemetry_relay.serialization.nodes import NodeKind
from telemetry_relay.serialization.serializer import ReferenceSafeSerializer, RestoredError

__all__ = [
    "NodeKind",
    "ReferenceSafeSerializer",
    "RestoredError",
]
