"""
Package: config
Description: Delivery policy and process settings.
"""

from telemetry_relay.config.delivery import DEFAULT_HEADERS, DeliveryConfiguration, DeliveryOptions
from telemetry_relay.config.settings import RelaySettings, get_settings

__all__ = [
    "DEFAULT_HEADERS",
    "DeliveryConfiguration",
    "DeliveryOptions",
    "RelaySettings",
    "get_settings",
]
