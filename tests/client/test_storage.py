"""Tests for key-value storage backends."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from versesync.client.storage import MemoryStorage, SQLiteStorage, StorageError


@pytest.fixture
def sqlite_storage(tmp_path: Path):
    """SQLite storage in a temporary directory."""
    storage = SQLiteStorage(tmp_path / "kv.db")
    yield storage
    storage.close()


class TestSQLiteStorage:
    """Tests for SQLiteStorage."""

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        """Missing parent directories are created."""
        db_path = tmp_path / "nested" / "dir" / "kv.db"
        storage = SQLiteStorage(db_path)
        storage.close()
        assert db_path.exists()

    def test_read_missing_key(self, sqlite_storage: SQLiteStorage) -> None:
        """Reading an absent key returns None."""
        assert sqlite_storage.read("nothing") is None

    def test_write_then_read(self, sqlite_storage: SQLiteStorage) -> None:
        """Written bytes are read back unchanged."""
        sqlite_storage.write("k", b"\x00value\xff")
        assert sqlite_storage.read("k") == b"\x00value\xff"

    def test_write_replaces(self, sqlite_storage: SQLiteStorage) -> None:
        """A second write replaces the first."""
        sqlite_storage.write("k", b"one")
        sqlite_storage.write("k", b"two")
        assert sqlite_storage.read("k") == b"two"
        assert sqlite_storage.keys() == ["k"]

    def test_delete(self, sqlite_storage: SQLiteStorage) -> None:
        """Deleted keys read as None; deleting twice is harmless."""
        sqlite_storage.write("k", b"v")
        sqlite_storage.delete("k")
        sqlite_storage.delete("k")
        assert sqlite_storage.read("k") is None

    def test_keys_sorted(self, sqlite_storage: SQLiteStorage) -> None:
        """keys lists every stored key in order."""
        for key in ("b", "a", "c"):
            sqlite_storage.write(key, b"x")
        assert sqlite_storage.keys() == ["a", "b", "c"]

    def test_survives_reopen(self, tmp_path: Path) -> None:
        """Values persist across connections."""
        db_path = tmp_path / "kv.db"
        first = SQLiteStorage(db_path)
        first.write("syncQueue", b"[]")
        first.close()

        second = SQLiteStorage(db_path)
        try:
            assert second.read("syncQueue") == b"[]"
        finally:
            second.close()

    def test_text_values_returned_as_bytes(self, sqlite_storage: SQLiteStorage) -> None:
        """Values stored as TEXT by other tools come back as bytes."""
        conn = sqlite3.connect(str(sqlite_storage.path))
        conn.execute(
            "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            ("text", "héllo", 0.0),
        )
        conn.commit()
        conn.close()

        assert sqlite_storage.read("text") == "héllo".encode()

    def test_unopenable_path_raises(self, tmp_path: Path) -> None:
        """A path that cannot hold a database raises StorageError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            SQLiteStorage(blocker / "kv.db")

    def test_closed_storage_raises(self, tmp_path: Path) -> None:
        """Using a closed connection raises StorageError."""
        storage = SQLiteStorage(tmp_path / "kv.db")
        storage.close()
        with pytest.raises(StorageError):
            storage.write("k", b"v")


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_read_write_delete(self) -> None:
        """Basic operations behave like a dict."""
        storage = MemoryStorage()
        assert storage.read("k") is None
        storage.write("k", b"v")
        assert storage.read("k") == b"v"
        storage.delete("k")
        assert storage.read("k") is None

    def test_stores_copies(self) -> None:
        """Mutating the written buffer does not change the stored value."""
        storage = MemoryStorage()
        buffer = bytearray(b"abc")
        storage.write("k", buffer)
        buffer[0] = ord("z")
        assert storage.read("k") == b"abc"

    def test_keys_sorted(self) -> None:
        """keys lists every stored key in order."""
        storage = MemoryStorage()
        storage.write("b", b"")
        storage.write("a", b"")
        assert storage.keys() == ["a", "b"]
