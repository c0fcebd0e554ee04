"""
Module: connection.py
Description: Opens and closes the shared sqlite connection for the durable store.

initialize() never raises: an invalid configuration, a host without
on-disk storage, or a failure while opening all come back as an
InitResult with success=False and a reason.
"""

from dataclasses import dataclass
from typing import Optional

from telemetry_relay.utils.logger import get_logger
from telemetry_relay.utils.timestamps import utc_now_iso
from telemetry_relay.storage.config import StoreConfig, sqlite3

logger = get_logger(__name__)


@dataclass
class InitResult:
    success: bool = False
    error: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass
class CloseResult:
    success: bool = False
    error: Optional[str] = None


class ConnectionManager:
    """
    Owns the single sqlite connection used by the durable store.

    Attributes:
        config: Store configuration
        connection: Open connection, or None
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self.connection = None
        self._available = False

    def initialize(self) -> InitResult:
        """
        Validate the configuration, check the host, and open the database.

        Creates the record table if it is missing and records the schema
        version.

        Returns:
            InitResult describing success or the reason for failure
        """
        result = InitResult(timestamp=utc_now_iso())

        validation = self.config.validate()
        if not validation.is_valid:
            result.error = f"Invalid configuration: {', '.join(validation.errors)}"
            return result

        availability = self.config.check_availability()
        if not availability.is_available:
            result.error = availability.reason
            return result

        try:
            connection = sqlite3.connect(self.config.db_path, check_same_thread=False)
            connection.execute(self.config.create_table_sql())

            current_version = connection.execute("PRAGMA user_version").fetchone()[0]
            if current_version < self.config.version:
                connection.execute(f"PRAGMA user_version = {int(self.config.version)}")
            connection.commit()

        except sqlite3.Error as e:
            result.error = f"Error opening database: {e}"
            return result

        self.connection = connection
        self._available = True
        result.success = True

        logger.debug(
            "Durable store connection opened",
            db_path=self.config.db_path,
            table_name=self.config.table_name,
            version=self.config.version
        )

        return result

    def close(self) -> CloseResult:
        """Close the connection, if one is open."""
        result = CloseResult()

        if self.connection is None:
            result.error = "No open connection to close"
            return result

        try:
            self.connection.close()
            result.success = True
        except sqlite3.Error as e:
            result.error = f"Error closing connection: {e}"
        finally:
            self.connection = None
            self._available = False

        return result

    def is_available(self) -> bool:
        return self._available and self.connection is not None

    def get_connection(self):
        return self.connection if self.is_available() else None
