"""
Module: database.py
Description: Key-ordered persistent record table for the durable buffer.

Provides async operations for appending, reading, updating and deleting
opaque records in a single sqlite table. Records are JSON-safe dicts;
the store assigns each one an integer handle.

Key Components:
- DurableStore: Main store class (config + connection + transaction layers)
- Execution: sqlite calls run on a single worker thread owned by the
  store, so the event loop never blocks on disk I/O and operations run
  one at a time in submission order
- Availability: every operation on an unavailable store is a no-op that
  returns an empty result instead of raising
- Error handling: sqlite errors are logged and re-raised as
  StoreOperationError

Dependencies: sqlite3, json, structlog
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from telemetry_relay.errors import StoreOperationError, StoreUnavailableError
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.storage.config import StoreConfig, sqlite3
from telemetry_relay.storage.connection import ConnectionManager
from telemetry_relay.storage.transactions import TransactionManager

logger = get_logger(__name__)


class DurableStore:
    """
    sqlite-backed record table.

    Attributes:
        config: Store configuration
        connection_manager: Owner of the shared connection
        transactions: Transaction scopes over that connection

    Example:
        >>> store = DurableStore(StoreConfig(db_path="/tmp/buffer.sqlite3"))
        >>> await store.initialize()
        >>> record_id = await store.append({"items": "[]", "attempt": 0})
        >>> await store.read_by_id(record_id)
        {'items': '[]', 'attempt': 0, 'id': 1}
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self.connection_manager = ConnectionManager(self.config)
        self.transactions = TransactionManager(self.connection_manager, self.config)
        self._executor: Optional[ThreadPoolExecutor] = None

    async def initialize(self) -> bool:
        """
        Open the database. Never raises.

        Returns:
            True if the store is usable
        """
        result = await self._run(self.connection_manager.initialize)

        if result.success:
            logger.info(
                "Durable store initialized",
                db_path=self.config.db_path,
                table_name=self.config.table_name
            )
        else:
            logger.warning(
                "Durable store unavailable",
                db_path=self.config.db_path,
                reason=result.error
            )

        return result.success

    def is_available(self) -> bool:
        return self.connection_manager.is_available()

    def close(self) -> bool:
        """Wait for the running operation, then close the connection."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        result = self.connection_manager.close()
        if not result.success:
            logger.warning("Error closing durable store", error=result.error)
        return result.success

    async def append(self, record: Dict[str, Any]) -> Optional[int]:
        """
        Append a record.

        Args:
            record: JSON-safe dict; an "id" key, if present, is ignored

        Returns:
            The assigned handle, or None if the store is unavailable

        Raises:
            StoreOperationError: If the write fails
        """
        return await self._run(self._append, record)

    async def read_all(self) -> List[Dict[str, Any]]:
        """
        Read every record in handle order.

        Returns:
            Records with their "id" key set; empty if unavailable

        Raises:
            StoreOperationError: If the read fails
        """
        return await self._run(self._read_all)

    async def read_by_id(self, record_id: int) -> Optional[Dict[str, Any]]:
        """
        Read one record.

        Returns:
            The record, or None if missing or the store is unavailable

        Raises:
            StoreOperationError: If the read fails
        """
        return await self._run(self._read_by_id, record_id)

    async def update(self, record_id: int, changes: Dict[str, Any]) -> None:
        """
        Merge changes into an existing record.

        Raises:
            StoreOperationError: If the record does not exist or the write fails
        """
        await self._run(self._update, record_id, changes)

    async def remove(self, record_id: int) -> None:
        """
        Delete a record. Deleting a missing record is not an error.

        Raises:
            StoreOperationError: If the write fails
        """
        await self._run(self._remove, record_id)

    async def clear(self) -> None:
        """
        Delete every record.

        Raises:
            StoreOperationError: If the write fails
        """
        await self._run(self._clear)

    async def _run(self, operation: Callable[..., Any], *args: Any) -> Any:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="durable-store")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, operation, *args)

    def _append(self, record: Dict[str, Any]) -> Optional[int]:
        data = {k: v for k, v in record.items() if k != "id"}

        try:
            with self.transactions.write() as connection:
                cursor = connection.execute(
                    f"INSERT INTO {self.config.table_name} (data) VALUES (?)",
                    (json.dumps(data),)
                )
                record_id = cursor.lastrowid

        except StoreUnavailableError:
            logger.debug("Append skipped, durable store unavailable")
            return None

        except (sqlite3.Error, TypeError, ValueError) as e:
            self._log_failure("append", e)
            raise StoreOperationError(f"append failed: {e}") from e

        logger.debug("Record appended", record_id=record_id, table_name=self.config.table_name)
        return record_id

    def _read_all(self) -> List[Dict[str, Any]]:
        try:
            with self.transactions.read() as connection:
                rows = connection.execute(
                    f"SELECT id, data FROM {self.config.table_name} ORDER BY id"
                ).fetchall()

        except StoreUnavailableError:
            return []

        except sqlite3.Error as e:
            self._log_failure("read_all", e)
            raise StoreOperationError(f"read_all failed: {e}") from e

        return [self._row_to_record(row_id, data) for row_id, data in rows]

    def _read_by_id(self, record_id: int) -> Optional[Dict[str, Any]]:
        try:
            with self.transactions.read() as connection:
                row = connection.execute(
                    f"SELECT id, data FROM {self.config.table_name} WHERE id = ?",
                    (record_id,)
                ).fetchone()

        except StoreUnavailableError:
            return None

        except sqlite3.Error as e:
            self._log_failure("read_by_id", e, record_id=record_id)
            raise StoreOperationError(f"read_by_id failed: {e}") from e

        if row is None:
            return None
        return self._row_to_record(row[0], row[1])

    def _update(self, record_id: int, changes: Dict[str, Any]) -> None:
        try:
            with self.transactions.write() as connection:
                row = connection.execute(
                    f"SELECT data FROM {self.config.table_name} WHERE id = ?",
                    (record_id,)
                ).fetchone()
                if row is None:
                    raise StoreOperationError(f"record {record_id} not found")

                current = self._load(record_id, row[0])
                current.pop("id", None)
                current.update({k: v for k, v in changes.items() if k != "id"})

                connection.execute(
                    f"UPDATE {self.config.table_name} SET data = ? WHERE id = ?",
                    (json.dumps(current), record_id)
                )

        except StoreUnavailableError:
            logger.debug("Update skipped, durable store unavailable", record_id=record_id)
            return

        except (sqlite3.Error, TypeError, ValueError) as e:
            self._log_failure("update", e, record_id=record_id)
            raise StoreOperationError(f"update failed: {e}") from e

    def _remove(self, record_id: int) -> None:
        try:
            with self.transactions.write() as connection:
                connection.execute(
                    f"DELETE FROM {self.config.table_name} WHERE id = ?",
                    (record_id,)
                )

        except StoreUnavailableError:
            logger.debug("Remove skipped, durable store unavailable", record_id=record_id)
            return

        except sqlite3.Error as e:
            self._log_failure("remove", e, record_id=record_id)
            raise StoreOperationError(f"remove failed: {e}") from e

    def _clear(self) -> None:
        try:
            with self.transactions.write() as connection:
                connection.execute(f"DELETE FROM {self.config.table_name}")

        except StoreUnavailableError:
            return

        except sqlite3.Error as e:
            self._log_failure("clear", e)
            raise StoreOperationError(f"clear failed: {e}") from e

    def _row_to_record(self, row_id: int, data: str) -> Dict[str, Any]:
        record = self._load(row_id, data)
        record["id"] = row_id
        return record

    @staticmethod
    def _load(row_id: int, data: str) -> Dict[str, Any]:
        try:
            record = json.loads(data)
        except ValueError as e:
            logger.warning("Unreadable record data", record_id=row_id, error=str(e))
            return {}
        return record if isinstance(record, dict) else {}

    def _log_failure(self, operation: str, error: Exception, **context: Any) -> None:
        logger.error(
            "Durable store operation failed",
            operation=operation,
            table_name=self.config.table_name,
            error=str(error),
            error_type=type(error).__name__,
            **context
        )
