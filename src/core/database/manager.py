"""
ModBoard - Database Manager
===========================

Central SQLite database manager for dashboard permissions and activity logs.
"""

import threading
from pathlib import Path
from typing import Optional

from src.core.logger import logger
from src.core.config import get_config
from src.core.database.base import DatabaseBase
from src.core.database.schema import SchemaMixin
from src.core.database.permissions import PermissionsMixin
from src.core.database.activity_logs import ActivityLogMixin


# =============================================================================
# Constants
# =============================================================================

DB_PATH: Optional[Path] = None
"""Override for the database file. None means use the configured path."""


# =============================================================================
# Database Manager (Singleton)
# =============================================================================

class DatabaseManager(
    DatabaseBase,
    SchemaMixin,
    PermissionsMixin,
    ActivityLogMixin,
):
    """
    Centralized database manager with thread-safe operations.

    DESIGN: Singleton so the process shares one connection. All statements
    go through DatabaseBase.execute, which serializes them on a lock.
    """

    _instance: Optional["DatabaseManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return

        db_path = DB_PATH or get_config().db_path
        self._init_base(db_path)
        self._init_tables()
        self._initialized = True

        logger.tree("Database Manager Initialized", [
            ("Path", str(db_path)),
            ("WAL Mode", "Enabled"),
        ], emoji="🗄️")


def get_db() -> DatabaseManager:
    """Get the database manager singleton."""
    return DatabaseManager()


__all__ = ["DatabaseManager", "get_db", "DB_PATH"]
