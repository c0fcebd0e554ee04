"""
Module: timestamps.py
Description: UTC timestamp helpers shared by queue items, records and envelopes.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Return the current UTC time as ISO 8601 text with a ``Z`` suffix."""
    return to_iso(utc_now())


def to_iso(value: datetime) -> str:
    """Render an aware UTC datetime as ISO 8601 text with a ``Z`` suffix."""
    return value.isoformat().replace("+00:00", "Z")
