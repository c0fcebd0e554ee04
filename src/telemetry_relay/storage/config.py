"""
Module: config.py
Description: Durable store configuration, validation and host checks.

Describes where the durable buffer lives (sqlite file, table, schema
version), validates those values, and checks whether the host can
actually provide on-disk storage before a connection is attempted.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

try:
    import sqlite3
except ImportError:  # interpreter built without sqlite support
    sqlite3 = None

from telemetry_relay.config.settings import RelaySettings

MEMORY_PATH = ":memory:"


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)


@dataclass
class AvailabilityResult:
    is_available: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class StoreConfig:
    """
    Location and schema of the durable buffer table.

    Attributes:
        db_path: sqlite database file, or ":memory:"
        version: Schema version written to PRAGMA user_version
        table_name: Table holding the records
    """

    db_path: str = "telemetry_relay_buffer.sqlite3"
    version: int = 1
    table_name: str = "failed_items"

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "StoreConfig":
        return cls(
            db_path=settings.buffer_db_path,
            version=settings.buffer_schema_version,
            table_name=settings.buffer_table_name
        )

    def validate(self) -> ValidationResult:
        """Check the configuration values."""
        result = ValidationResult()

        if not self.db_path or not isinstance(self.db_path, str):
            result.is_valid = False
            result.errors.append("db_path must be a non-empty string")

        if not isinstance(self.version, int) or self.version < 1:
            result.is_valid = False
            result.errors.append("version must be an integer greater than 0")

        if not self.table_name or not isinstance(self.table_name, str) or not re.match(
            r'^[A-Za-z_][A-Za-z0-9_]*$', self.table_name
        ):
            result.is_valid = False
            result.errors.append("table_name must be a plain SQL identifier")

        return result

    def check_availability(self) -> AvailabilityResult:
        """Check that the host can provide on-disk storage for this config."""
        result = AvailabilityResult()

        if sqlite3 is None:
            result.reason = "sqlite3 is not available in this interpreter"
            return result

        if self.db_path == MEMORY_PATH:
            result.is_available = True
            return result

        directory = Path(self.db_path).expanduser().resolve().parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            result.reason = f"cannot create buffer directory {directory}: {e}"
            return result

        if not os.access(directory, os.W_OK):
            result.reason = f"buffer directory {directory} is not writable"
            return result

        result.is_available = True
        return result

    def create_table_sql(self) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "data TEXT NOT NULL)"
        )
