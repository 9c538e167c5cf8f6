"""SQLite implementation of the key-value store."""

import sqlite3

from stackscan.config import settings
from stackscan.errors import StorageError, StorageQuotaExceededError
from stackscan.storage.repository import KeyValueStore


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed key-value storage with an optional size quota.

    The quota is counted in characters across all stored values, the
    way browser local storage budgets its space.
    """

    _CREATE_TABLE = """
        CREATE TABLE IF NOT EXISTS kv (
            key   TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """

    def __init__(self, db_path: str | None = None, quota_chars: int | None = None) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file. Defaults to settings.db_path.
                     Use ":memory:" for testing.
            quota_chars: Maximum total characters stored. None disables the quota.
        """
        self._db_path = db_path or str(settings.db_path)
        self._quota = quota_chars
        self._conn = sqlite3.connect(self._db_path)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        self._conn.execute(self._CREATE_TABLE)
        self._conn.commit()

    def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e
        return None if row is None else row["value"]

    def set(self, key: str, value: str) -> None:
        try:
            if self._quota is not None:
                used = self._used_chars(exclude=key)
                if used + len(value) > self._quota:
                    raise StorageQuotaExceededError(
                        f"Writing {len(value)} chars to {key!r} exceeds quota "
                        f"({used} of {self._quota} used)"
                    )
            self._conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete {key!r}: {e}") from e

    def _used_chars(self, exclude: str) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(SUM(LENGTH(value)), 0) AS used FROM kv WHERE key != ?",
            (exclude,),
        ).fetchone()
        return int(row["used"])
