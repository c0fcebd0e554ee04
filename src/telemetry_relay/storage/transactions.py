"""
Module: transactions.py
Description: Read and write transaction scopes over the shared connection.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from telemetry_relay.errors import StoreUnavailableError
from telemetry_relay.utils.timestamps import utc_now_iso
from telemetry_relay.storage.config import StoreConfig
from telemetry_relay.storage.connection import ConnectionManager


class TransactionManager:
    """
    Hands out transaction scopes on the durable store connection.

    Readers and writers are serialized by sqlite itself; this layer only
    decides when to commit or roll back.
    """

    def __init__(self, connection_manager: ConnectionManager, config: StoreConfig):
        self.connection_manager = connection_manager
        self.config = config

    @contextmanager
    def read(self) -> Iterator[Any]:
        """
        Yield the connection for reads.

        Raises:
            StoreUnavailableError: If no connection is open
        """
        self.ensure_available()
        yield self.connection_manager.get_connection()

    @contextmanager
    def write(self) -> Iterator[Any]:
        """
        Yield the connection inside a transaction.

        Commits when the block finishes and rolls back if it raises.

        Raises:
            StoreUnavailableError: If no connection is open
        """
        self.ensure_available()
        connection = self.connection_manager.get_connection()
        with connection:
            yield connection

    def ensure_available(self) -> None:
        if not self.connection_manager.is_available():
            raise StoreUnavailableError("Database not available")

    def status(self) -> Dict[str, Any]:
        return {
            "is_available": self.connection_manager.is_available(),
            "table_name": self.config.table_name,
            "timestamp": utc_now_iso(),
        }
