"""
ModBoard - Database Package
===========================

SQLite storage for dashboard permission grants and the activity log.
"""

from src.core.database.manager import DatabaseManager, get_db
from src.core.database.base import PersistenceError
from src.core.database.models import (
    DASHBOARD_GUILD_ID,
    ActivityLogEntry,
    ActivityStats,
    LogFilter,
    PermissionGrant,
)

__all__ = [
    "DatabaseManager",
    "get_db",
    "PersistenceError",
    "DASHBOARD_GUILD_ID",
    "ActivityLogEntry",
    "ActivityStats",
    "LogFilter",
    "PermissionGrant",
]
