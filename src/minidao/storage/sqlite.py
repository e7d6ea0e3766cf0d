"""SQLite store backend for minidao.

Persists scoped key-value pairs in a single ``kv_store`` table with values
encoded as JSON. Nested transactions map onto SQLite savepoints so a failed
inner call can be undone without losing the outer call's writes.
"""

import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from ..errors.exceptions import ConfigurationError, StorageError
from .store import KeyValueStore, StorageScope

_SYNCHRONOUS_MODES = ("OFF", "NORMAL", "FULL", "EXTRA")
_JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")


@dataclass
class StoreConfig:
    """SQLite store configuration."""

    database_path: str = "minidao.db"
    connection_timeout: float = 30.0
    synchronous: str = "NORMAL"  # OFF, NORMAL, FULL, EXTRA
    journal_mode: str = "WAL"  # DELETE, TRUNCATE, PERSIST, MEMORY, WAL, OFF

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration."""
        if not self.database_path:
            raise ConfigurationError("Database path must not be empty", config_key="database_path")

        if self.connection_timeout <= 0:
            raise ConfigurationError(
                "Connection timeout must be positive", config_key="connection_timeout"
            )

        if self.synchronous.upper() not in _SYNCHRONOUS_MODES:
            raise ConfigurationError(
                f"Unknown synchronous mode: {self.synchronous}", config_key="synchronous"
            )

        if self.journal_mode.upper() not in _JOURNAL_MODES:
            raise ConfigurationError(
                f"Unknown journal mode: {self.journal_mode}", config_key="journal_mode"
            )

    @property
    def in_memory(self) -> bool:
        return self.database_path == ":memory:"


class SQLiteStore(KeyValueStore):
    """SQLite-backed scoped key-value store."""

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0
        self._logger = logging.getLogger(__name__)

        if not self.config.in_memory:
            Path(self.config.database_path).parent.mkdir(parents=True, exist_ok=True)

        self.connect()

    def connect(self) -> None:
        """Establish SQLite database connection."""
        with self._lock:
            if self._connection is not None:
                return

            try:
                self._connection = sqlite3.connect(
                    self.config.database_path,
                    timeout=self.config.connection_timeout,
                    isolation_level=None,  # transactions are driven through savepoints
                    check_same_thread=False,
                )
                self._connection.execute(f"PRAGMA synchronous = {self.config.synchronous.upper()}")
                if not self.config.in_memory:
                    self._connection.execute(
                        f"PRAGMA journal_mode = {self.config.journal_mode.upper()}"
                    )
                self._create_tables()
            except sqlite3.Error as e:
                raise StorageError(
                    f"Failed to connect to database: {e}",
                    storage_type="sqlite",
                    operation="connect",
                    cause=e,
                ) from e

            self._logger.info(f"Connected to SQLite store: {self.config.database_path}")

    def _create_tables(self) -> None:
        self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                scope TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,  -- JSON
                updated_at REAL NOT NULL,
                PRIMARY KEY (scope, key)
            )
            """
        )

    def close(self) -> None:
        """Close SQLite database connection."""
        with self._lock:
            if self._connection is None:
                return
            if self._depth:
                self._logger.warning(
                    f"Closing SQLite store with {self._depth} open transaction(s); rolling back"
                )
                self._connection.execute("ROLLBACK")
                self._depth = 0
            self._connection.close()
            self._connection = None
            self._logger.info("Disconnected from SQLite store")

    def _execute(self, operation: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if self._connection is None:
            raise StorageError("Store is closed", storage_type="sqlite", operation=operation)
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(
                f"SQLite {operation} failed: {e}",
                storage_type="sqlite",
                operation=operation,
                cause=e,
            ) from e

    def get(self, scope: StorageScope, key: str, default: Any = None) -> Any:
        with self._lock:
            row = self._execute(
                "get",
                "SELECT value FROM kv_store WHERE scope = ? AND key = ?",
                (scope.value, key),
            ).fetchone()
            if row is None:
                return default
            return json.loads(row[0])

    def set(self, scope: StorageScope, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except TypeError as e:
            raise StorageError(
                f"Value for {key!r} is not JSON serializable: {e}",
                storage_type="sqlite",
                operation="set",
                cause=e,
            ) from e

        with self._lock:
            self._execute(
                "set",
                "INSERT OR REPLACE INTO kv_store (scope, key, value, updated_at) VALUES (?, ?, ?, ?)",
                (scope.value, key, encoded, time.time()),
            )

    def has(self, scope: StorageScope, key: str) -> bool:
        with self._lock:
            row = self._execute(
                "has",
                "SELECT 1 FROM kv_store WHERE scope = ? AND key = ?",
                (scope.value, key),
            ).fetchone()
            return row is not None

    def remove(self, scope: StorageScope, key: str) -> None:
        with self._lock:
            self._execute(
                "remove",
                "DELETE FROM kv_store WHERE scope = ? AND key = ?",
                (scope.value, key),
            )

    def keys(self, scope: StorageScope, prefix: str = "") -> List[str]:
        with self._lock:
            rows = self._execute(
                "keys",
                "SELECT key FROM kv_store WHERE scope = ? AND substr(key, 1, ?) = ? ORDER BY key",
                (scope.value, len(prefix), prefix),
            ).fetchall()
            return [row[0] for row in rows]

    def _savepoint(self) -> str:
        return f"minidao_sp_{self._depth}"

    def begin(self) -> None:
        with self._lock:
            self._depth += 1
            self._execute("begin", f"SAVEPOINT {self._savepoint()}")

    def commit(self) -> None:
        with self._lock:
            if self._depth == 0:
                raise StorageError("No open transaction to commit", storage_type="sqlite", operation="commit")
            self._execute("commit", f"RELEASE SAVEPOINT {self._savepoint()}")
            self._depth -= 1

    def rollback(self) -> None:
        with self._lock:
            if self._depth == 0:
                raise StorageError(
                    "No open transaction to roll back", storage_type="sqlite", operation="rollback"
                )
            savepoint = self._savepoint()
            self._execute("rollback", f"ROLLBACK TO SAVEPOINT {savepoint}")
            self._execute("rollback", f"RELEASE SAVEPOINT {savepoint}")
            self._depth -= 1

    @property
    def depth(self) -> int:
        return self._depth

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
