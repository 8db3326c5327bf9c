"""
ModBoard - Database Base Module
===============================

Core SQLite connection and execution methods shared by every mixin.
"""

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Tuple

from src.core.logger import logger
from src.core.database.models import to_storage_timestamp


# =============================================================================
# Exceptions
# =============================================================================

class PersistenceError(Exception):
    """Raised when the underlying store fails a read or write."""

    pass


# =============================================================================
# Helper Functions
# =============================================================================

def _safe_json_loads(value: Optional[str], default: Any = None) -> Any:
    """Parse JSON, returning default (or an empty list) on bad input."""
    if not value:
        return default if default is not None else []
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Corrupted JSON In Database", [
            ("Value", value[:50]),
        ])
        return default if default is not None else []


# =============================================================================
# Base Database Class
# =============================================================================

class DatabaseBase:
    """
    Connection handling for the dashboard database.

    One connection is shared behind a lock, so every statement is
    serialized. WAL mode keeps readers from blocking on the writer.
    """

    _db_path: Path
    _db_lock: threading.Lock
    _conn: Optional[sqlite3.Connection]

    def _init_base(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_lock = threading.Lock()
        self._conn = None

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connect()

    # =========================================================================
    # Clock
    # =========================================================================

    def _now(self) -> datetime:
        """Current UTC time. Stored timestamps are always UTC."""
        return datetime.now(timezone.utc)

    def _timestamp(self, value: Optional[datetime] = None) -> str:
        return to_storage_timestamp(value or self._now())

    # =========================================================================
    # Connection Management
    # =========================================================================

    def _connect(self) -> None:
        try:
            self._conn = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
                timeout=30.0,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            logger.error("Database Connection Failed", [
                ("Path", str(self._db_path)),
                ("Error", str(e)),
            ])
            raise PersistenceError(str(e)) from e

    def _ensure_connection(self) -> sqlite3.Connection:
        """Return a live connection, reconnecting if needed."""
        if self._conn is None:
            self._connect()
        try:
            self._conn.execute("SELECT 1")
        except sqlite3.Error:
            self._connect()
        return self._conn

    def execute(
        self,
        query: str,
        params: Tuple = (),
        commit: bool = True,
    ) -> sqlite3.Cursor:
        """Execute a query with thread safety."""
        with self._db_lock:
            conn = self._ensure_connection()
            cursor = conn.cursor()
            cursor.execute(query, params)
            if commit:
                conn.commit()
            return cursor

    def fetchone(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        cursor = self.execute(query, params, commit=False)
        return cursor.fetchone()

    def fetchall(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        cursor = self.execute(query, params, commit=False)
        return cursor.fetchall()

    def close(self) -> None:
        """Close the database connection."""
        with self._db_lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("Database Connection Closed")


__all__ = [
    "DatabaseBase",
    "PersistenceError",
    "_safe_json_loads",
]
