"""SQLite-backed key/value persistence for sources, jobs and settings."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict

SOURCES_KEY = "sentinel_sites"
JOBS_KEY = "sentinel_jobs"
SETTINGS_KEY = "sentinel_settings"

_BUSY_TIMEOUT_SECONDS = 10.0


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees.

    Connections run in autocommit mode; multi-statement writes open their
    own ``BEGIN IMMEDIATE`` transaction so other processes sharing the file
    wait for them instead of interleaving.
    """

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(
                    path,
                    check_same_thread=False,
                    isolation_level=None,
                    timeout=_BUSY_TIMEOUT_SECONDS,
                )
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT
            )
            """
        )

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class StateStore:
    """JSON key/value store shared by every process pointed at the same file."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def load(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read(key, default)

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._write(key, value)

    def update(self, key: str, transform: Callable[[Any], Any], default: Any = None) -> Any:
        """Apply ``transform`` to the stored value atomically and return the result.

        The read and the write share one ``BEGIN IMMEDIATE`` transaction, so a
        concurrent writer in another process cannot slip in between them.
        """

        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                value = transform(self._read(key, default))
                self._write(key, value)
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")
        return value

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def reset(self) -> None:
        with self._lock:
            self.manager.reset(self.db_path)
            self._conn = self.manager.connect(self.db_path)

    def _read(self, key: str, default: Any) -> Any:
        row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def _write(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        self._conn.execute(
            "INSERT OR REPLACE INTO kv_store(key, value, updated_at) VALUES (?, ?, datetime('now'))",
            (key, payload),
        )


__all__ = ["JOBS_KEY", "SETTINGS_KEY", "SOURCES_KEY", "SQLiteManager", "StateStore"]
