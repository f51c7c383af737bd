from __future__ import annotations

"""
Persistent key-value storage backed by SQLite.

Values are serialized to JSON so callers can store plain dictionaries (the
staking contract snapshot, the pause state) without handling SQL or
connections directly.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

logger = logging.getLogger("stakevault.database.storage_manager")

IN_MEMORY = ":memory:"


class StorageManager:
    """
    Manages a persistent key-value store backed by a SQLite database.

    Each instance owns one connection; pass ``":memory:"`` for a throwaway
    store.
    """

    def __init__(self, db_path: Path | str):
        """
        Open (and create if needed) the database and its table.

        Args:
            db_path: Path to the SQLite file. The parent directory is created
                if it does not exist.
        """
        self.db_path = db_path
        if str(db_path) != IN_MEMORY:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        try:
            self._conn = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level="EXCLUSIVE"
            )
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._create_table()
        except sqlite3.Error as e:
            logger.critical(
                "Database connection failed",
                extra={"event": "storage.connect_failed", "path": str(db_path), "error": str(e)},
            )
            raise

    def _create_table(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS key_value_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def set(self, key: str, value: Any) -> None:
        """
        Saves or updates a value in the key-value store.

        Raises:
            TypeError: If the value cannot be JSON serialized
            sqlite3.Error: If the write fails
        """
        try:
            value_json = json.dumps(value)
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO key_value_store (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, value_json),
                )
        except (sqlite3.Error, TypeError) as e:
            logger.error(
                "Failed to set key",
                extra={"event": "storage.set_failed", "key": key, "error": str(e)},
            )
            raise

    def get(self, key: str, default: Any | None = None) -> Any:
        """
        Retrieves a value by key, or ``default`` if the key is not found.
        """
        try:
            cursor = self._conn.cursor()
            cursor.execute("SELECT value FROM key_value_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            if row:
                return json.loads(row[0])
            return default
        except sqlite3.Error as e:
            logger.error(
                "Failed to get key",
                extra={"event": "storage.get_failed", "key": key, "error": str(e)},
            )
            return default

    def delete(self, key: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM key_value_store WHERE key = ?", (key,))

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
