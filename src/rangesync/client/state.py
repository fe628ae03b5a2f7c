"""Local durable store for the rangesync client.

This module provides:
- LocalStore: SQLite-backed, id-keyed document tables
- Key-value sync state (last pull time, cached user id, ...)

Architecture:
    Every table is a flat id-keyed collection of JSON documents; the
    store performs no joins and knows nothing about the network. Rows
    keep their insertion sequence, so an in-place update (upsert) keeps
    an entry's position. The outbox relies on this for FIFO order with
    coalescing.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PLAYERS_TABLE = "players"
PLAYER_RANGES_TABLE = "player_ranges"
SESSIONS_TABLE = "sessions"
PENDING_SYNC_TABLE = "pending_sync"
PLAYER_LINKS_TABLE = "player_links"

TABLES = (
    PLAYERS_TABLE,
    PLAYER_RANGES_TABLE,
    SESSIONS_TABLE,
    PENDING_SYNC_TABLE,
    PLAYER_LINKS_TABLE,
)


class UnknownTableError(KeyError):
    """Raised when a caller names a table the store does not have."""


class LocalStore:
    """SQLite-based document store for local entities.

    Must be durable across process restarts, so use a file path in
    production. ":memory:" is accepted for tests.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize local store database.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        # Lock for access from multiple logical sessions sharing a process
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        statements = [
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                data TEXT NOT NULL
            );
            """
            for table in TABLES
        ]
        statements.append("""
            -- Key-value sync state
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        self._conn.executescript("\n".join(statements))

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @property
    def path(self) -> str:
        return self._db_path

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise UnknownTableError(table)

    # === Document operations ===

    def get(self, table: str, entity_id: str) -> dict[str, Any] | None:
        """Get a document by id.

        Args:
            table: Table name.
            entity_id: Document id.

        Returns:
            Decoded document, or None if absent.
        """
        self._check_table(table)
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT data FROM {table} WHERE id = ?",
                (entity_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return dict(json.loads(row["data"]))

    def get_all(self, table: str) -> list[dict[str, Any]]:
        """List all documents of a table in insertion order."""
        self._check_table(table)
        with self._lock:
            cursor = self._conn.execute(f"SELECT data FROM {table} ORDER BY seq")
            rows = cursor.fetchall()
        return [dict(json.loads(row["data"])) for row in rows]

    def put(self, table: str, entity_id: str, data: dict[str, Any]) -> None:
        """Insert or replace a document.

        An existing document keeps its position in the table.
        """
        self._check_table(table)
        payload = json.dumps(data, separators=(",", ":"))
        with self._lock:
            self._conn.execute(
                f"""
                INSERT INTO {table} (id, data) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data
                """,
                (entity_id, payload),
            )

    def put_many(self, table: str, documents: list[tuple[str, dict[str, Any]]]) -> None:
        """Upsert several documents in one transaction."""
        self._check_table(table)
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                self._conn.executemany(
                    f"""
                    INSERT INTO {table} (id, data) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET data = excluded.data
                    """,
                    [(eid, json.dumps(d, separators=(",", ":"))) for eid, d in documents],
                )
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def delete(self, table: str, entity_id: str) -> bool:
        """Delete a document.

        Returns:
            True if a document was removed.
        """
        self._check_table(table)
        with self._lock:
            cursor = self._conn.execute(
                f"DELETE FROM {table} WHERE id = ?",
                (entity_id,),
            )
        return cursor.rowcount > 0

    def replace_all(self, table: str, documents: list[tuple[str, dict[str, Any]]]) -> None:
        """Replace the whole content of a table, preserving the given order."""
        self._check_table(table)
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                self._conn.execute(f"DELETE FROM {table}")
                self._conn.executemany(
                    f"INSERT INTO {table} (id, data) VALUES (?, ?)",
                    [(eid, json.dumps(d, separators=(",", ":"))) for eid, d in documents],
                )
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def count(self, table: str) -> int:
        """Count documents in a table."""
        self._check_table(table)
        with self._lock:
            cursor = self._conn.execute(f"SELECT COUNT(*) AS n FROM {table}")
            return int(cursor.fetchone()["n"])

    def clear(self, table: str | None = None) -> None:
        """Remove all documents from one table, or from every table."""
        tables = TABLES if table is None else (table,)
        for name in tables:
            self._check_table(name)
        with self._lock:
            for name in tables:
                self._conn.execute(f"DELETE FROM {name}")
            if table is None:
                self._conn.execute("DELETE FROM sync_state")
        logger.debug("Cleared local tables: %s", ", ".join(tables))

    # === Sync state ===

    def get_state(self, key: str) -> str | None:
        """Get a sync state value."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Set a sync state value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_last_pull_at(self) -> int | None:
        """Get timestamp (ms) of the last successful pull."""
        value = self.get_state("last_pull_at")
        return int(value) if value else None

    def set_last_pull_at(self, timestamp: int) -> None:
        """Set timestamp (ms) of the last successful pull."""
        self.set_state("last_pull_at", str(timestamp))
