"""
Package: telemetry_relay
Description: Delivery engine for a client-side telemetry agent.

Batches error reports and breadcrumbs, delivers them to a collector over
HTTP, retries failed batches with exponential backoff and keeps them in a
sqlite durable buffer so they survive a restart.
"""

from telemetry_relay.config import DeliveryConfiguration, DeliveryOptions, RelaySettings, get_settings
from telemetry_relay.delivery import DeliveryAgent
from telemetry_relay.serialization import ReferenceSafeSerializer

__version__ = "0.1.0"

__all__ = [
    "DeliveryAgent",
    "DeliveryConfiguration",
    "DeliveryOptions",
    "ReferenceSafeSerializer",
    "RelaySettings",
    "get_settings",
]
