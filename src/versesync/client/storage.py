"""Durable key-value storage backends for the offline queue.

This module provides:
- KeyValueStorage: Protocol consumed by QueueStore
- SQLiteStorage: SQLite-backed key-value store
- MemoryStorage: In-process dict-backed store
- StorageError: Raised by backends on read/write failure

Architecture:
    Backends are synchronous and own no queue semantics. They store opaque
    bytes under string keys; serialization and corruption handling live in
    QueueStore.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage backend cannot be read or written."""


class KeyValueStorage(Protocol):
    """Protocol for durable key-value storage."""

    def read(self, key: str) -> bytes | None:
        """Return the last value written under key, or None if absent."""
        ...

    def write(self, key: str, data: bytes) -> None:
        """Replace the value stored under key."""
        ...


class SQLiteStorage:
    """SQLite-based key-value store.

    Values are stored in a single table keyed by name. Each write replaces
    the whole value, which is what the queue store relies on for atomic
    snapshots.
    """

    def __init__(self, db_path: Path) -> None:
        """Open (or create) the key-value database.

        Args:
            db_path: Path to SQLite database file.

        Raises:
            StorageError: If the database cannot be opened.
        """
        self._db_path = Path(db_path)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
            )
            self._conn.row_factory = sqlite3.Row

            # Enable WAL mode for better concurrency
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open storage at {self._db_path}: {e}") from e

        logger.debug("Opened key-value storage at %s", self._db_path)

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                updated_at REAL NOT NULL
            );
        """)

    @property
    def path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def read(self, key: str) -> bytes | None:
        """Get the value stored under key.

        Args:
            key: Storage key.

        Returns:
            Stored bytes, or None if the key is absent.

        Raises:
            StorageError: If the database cannot be read.
        """
        try:
            with self._lock:
                cursor = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?",
                    (key,),
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot read key {key!r}: {e}") from e
        if row is None:
            return None
        value = row["value"]
        # TEXT values written by other tools come back as str
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def write(self, key: str, data: bytes) -> None:
        """Replace the value stored under key (upsert).

        Raises:
            StorageError: If the database cannot be written.
        """
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, sqlite3.Binary(data), time.time()),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot write key {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        try:
            with self._lock:
                self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageError(f"Cannot delete key {key!r}: {e}") from e

    def keys(self) -> list[str]:
        """List stored keys in sorted order."""
        try:
            with self._lock:
                rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot list keys: {e}") from e
        return [row["key"] for row in rows]


class MemoryStorage:
    """Dict-backed key-value store.

    Nothing survives the process; useful for tests and ephemeral sessions.
    """

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
