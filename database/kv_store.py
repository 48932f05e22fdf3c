import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from backend.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """String keys to JSON documents, kept in one SQLite table.

    One connection is held between open() and close(); every call takes the
    store lock, so each operation is atomic with respect to the others.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def open(self) -> "KeyValueStore":
        if self._conn is not None:
            return self
        conn = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """)
            conn.commit()
        except (OSError, sqlite3.Error) as e:
            if conn is not None:
                conn.close()
            raise StorageError(f"Could not open store at {self.db_path}: {e}") from e
        self._conn = conn
        logger.info("Opened key-value store at %s", self.db_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Closed key-value store at %s", self.db_path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "KeyValueStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _execute(self, sql: str, params: tuple = (), *, commit: bool = False) -> sqlite3.Cursor:
        if self._conn is None:
            raise StorageError("Key-value store is not open.")
        try:
            cur = self._conn.execute(sql, params)
            if commit:
                self._conn.commit()
            return cur
        except sqlite3.Error as e:
            if commit:
                self._conn.rollback()
            raise StorageError(f"Key-value store failure: {e}") from e

    # -----------------------------
    # Operations
    # -----------------------------
    def get(self, key: str) -> Any:
        with self._lock:
            row = self._execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        return _decode(key, row[0])

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        with self._lock:
            self._execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, payload),
                commit=True,
            )

    def set_if_absent(self, key: str, value: Any) -> bool:
        payload = json.dumps(value)
        with self._lock:
            cur = self._execute(
                "INSERT OR IGNORE INTO kv_store (key, value) VALUES (?, ?)",
                (key, payload),
                commit=True,
            )
            return cur.rowcount > 0

    def delete(self, key: str) -> bool:
        with self._lock:
            cur = self._execute("DELETE FROM kv_store WHERE key = ?", (key,), commit=True)
            return cur.rowcount > 0

    def get_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        with self._lock:
            rows = self._execute(
                """
                SELECT key, value
                FROM kv_store
                WHERE substr(key, 1, ?) = ?
                ORDER BY key
                """,
                (len(prefix), prefix),
            ).fetchall()
        return [(key, _decode(key, raw)) for key, raw in rows]


def _decode(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring corrupt value stored at %s", key)
        return None
