"""
ModBoard - Database Schema
==========================

Table definitions for permission grants and the activity log.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Create tables and indexes if they do not exist.

        Safe to run on every start.
        """
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Dashboard Permissions
        # One row per (user, guild); permissions is a JSON array of tokens
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS dashboard_permissions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                guild_id TEXT NOT NULL,
                permissions TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(user_id, guild_id)
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_dashboard_permissions_user "
            "ON dashboard_permissions(user_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_dashboard_permissions_guild "
            "ON dashboard_permissions(guild_id)"
        )

        # -----------------------------------------------------------------
        # Dashboard Activity Logs
        # Append-only audit trail, purged by age
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS dashboard_activity_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id TEXT NOT NULL DEFAULT 'dashboard',
                user_id TEXT NOT NULL,
                username TEXT,
                action_type TEXT NOT NULL,
                page TEXT NOT NULL,
                target_type TEXT,
                target_id TEXT,
                old_value TEXT,
                new_value TEXT,
                ip_address TEXT,
                user_agent TEXT,
                details TEXT,
                success INTEGER NOT NULL DEFAULT 1,
                error_message TEXT,
                created_at TEXT NOT NULL
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_activity_logs_created "
            "ON dashboard_activity_logs(created_at DESC)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_activity_logs_user "
            "ON dashboard_activity_logs(user_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_activity_logs_action "
            "ON dashboard_activity_logs(action_type)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_activity_logs_guild "
            "ON dashboard_activity_logs(guild_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_activity_logs_dedup "
            "ON dashboard_activity_logs(user_id, action_type, page, created_at)"
        )

        conn.commit()
