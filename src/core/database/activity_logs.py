"""
ModBoard - Activity Log Mixin
=============================

Audit trail of dashboard actions with short-window duplicate suppression,
filtered retrieval, aggregate stats and age-based purge.

DESIGN:
    log_activity never raises. Audit logging documents the primary action
    and must not fail it, so storage errors are logged and reported as
    False. The duplicate check and the insert are separate statements;
    two identical concurrent calls can both insert.
"""

import sqlite3
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from src.core.logger import logger
from src.core.config import get_config
from src.core.database.base import PersistenceError
from src.core.database.models import ActivityLogEntry, ActivityStats, LogFilter

if TYPE_CHECKING:
    from src.core.database.manager import DatabaseManager


LOG_COLUMNS = (
    "id, guild_id, user_id, username, action_type, page, target_type, "
    "target_id, old_value, new_value, ip_address, user_agent, details, "
    "success, error_message, created_at"
)


class ActivityLogMixin:
    """Mixin for dashboard activity log operations."""

    # =========================================================================
    # Write Operations
    # =========================================================================

    def log_activity(
        self: "DatabaseManager",
        entry: ActivityLogEntry,
        dedup_window: Optional[int] = None,
    ) -> bool:
        """
        Record an activity entry unless an identical one is recent.

        Args:
            entry: The entry to store. id and created_at are ignored.
            dedup_window: Seconds to look back for duplicates. Defaults to
                the configured window.

        Returns:
            True if inserted, False if suppressed as a duplicate or on error.
        """
        if dedup_window is None:
            dedup_window = get_config().dedup_window_seconds

        now = self._now()
        try:
            if dedup_window > 0 and self._has_recent_duplicate(entry, now - timedelta(seconds=dedup_window)):
                logger.debug("Duplicate Activity Suppressed", [
                    ("User ID", entry.user_id),
                    ("Action", entry.action_type),
                    ("Page", entry.page),
                ])
                return False

            self.execute(
                """INSERT INTO dashboard_activity_logs (
                       guild_id, user_id, username, action_type, page,
                       target_type, target_id, old_value, new_value,
                       ip_address, user_agent, details, success,
                       error_message, created_at
                   ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.guild_id, entry.user_id, entry.username,
                    entry.action_type, entry.page,
                    entry.target_type, entry.target_id,
                    entry.old_value, entry.new_value,
                    entry.ip_address, entry.user_agent, entry.details,
                    1 if entry.success else 0,
                    entry.error_message, self._timestamp(now),
                ),
            )
            return True

        except (sqlite3.Error, PersistenceError) as e:
            logger.error("Failed To Log Dashboard Activity", [
                ("User ID", entry.user_id),
                ("Action", entry.action_type),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            return False

    def _has_recent_duplicate(
        self: "DatabaseManager",
        entry: ActivityLogEntry,
        since: datetime,
    ) -> bool:
        row = self.fetchone(
            """SELECT id FROM dashboard_activity_logs
               WHERE user_id = ? AND action_type = ? AND page = ?
                 AND target_type IS ? AND target_id IS ?
                 AND created_at >= ?
               LIMIT 1""",
            (
                entry.user_id, entry.action_type, entry.page,
                entry.target_type, entry.target_id,
                self._timestamp(since),
            ),
        )
        return row is not None

    def backfill_username(self: "DatabaseManager", user_id: str, username: str) -> int:
        """
        Fill in a resolved username on this actor's rows that lack one.

        Returns:
            Number of rows updated.
        """
        cursor = self.execute(
            """UPDATE dashboard_activity_logs
               SET username = ?
               WHERE user_id = ? AND (username IS NULL OR username = '')""",
            (username, str(user_id)),
        )
        return cursor.rowcount

    def clean_old_logs(
        self: "DatabaseManager",
        days_old: Optional[int] = None,
        guild_ids: Optional[Sequence[str]] = None,
    ) -> int:
        """
        Delete entries older than days_old.

        The cutoff is exclusive: an entry stamped exactly at now - days_old
        is kept. When guild_ids is given, only entries of those guilds are
        deleted; an empty sequence deletes nothing.

        Raises:
            PersistenceError: On storage failure.
        """
        if days_old is None:
            days_old = get_config().retention_days

        cutoff = self._timestamp(self._now() - timedelta(days=days_old))
        if guild_ids is not None and not guild_ids:
            return 0

        query = "DELETE FROM dashboard_activity_logs WHERE created_at < ?"
        params: List[str] = [cutoff]
        if guild_ids is not None:
            placeholders = ",".join("?" * len(guild_ids))
            query += f" AND guild_id IN ({placeholders})"
            params.extend(str(g) for g in guild_ids)

        try:
            cursor = self.execute(query, tuple(params))
        except sqlite3.Error as e:
            logger.error("Activity Log Cleanup Failed", [
                ("Days", str(days_old)),
                ("Error", str(e)[:100]),
            ])
            raise PersistenceError(str(e)) from e

        deleted = cursor.rowcount
        logger.tree("Activity Logs Cleaned", [
            ("Older Than", f"{days_old} days"),
            ("Guilds", "all" if guild_ids is None else ", ".join(str(g) for g in guild_ids)),
            ("Cutoff (UTC)", cutoff),
            ("Deleted", str(deleted)),
        ], emoji="🧹")
        return deleted

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_logs(
        self: "DatabaseManager",
        log_filter: Optional[LogFilter] = None,
    ) -> Tuple[List[ActivityLogEntry], int]:
        """
        Query entries, newest first.

        Returns:
            Tuple of (entries, total_count). total_count ignores limit and
            offset.
        """
        log_filter = log_filter or LogFilter()
        where_clause, params = log_filter.build_where()

        total_row = self.fetchone(
            f"SELECT COUNT(*) AS total FROM dashboard_activity_logs WHERE {where_clause}",
            tuple(params),
        )
        total = total_row["total"] if total_row else 0

        rows = self.fetchall(
            f"""SELECT {LOG_COLUMNS}
                FROM dashboard_activity_logs
                WHERE {where_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?""",
            tuple(params) + (log_filter.bounded_limit, log_filter.bounded_offset),
        )
        return [ActivityLogEntry.from_row(row) for row in rows], total

    def get_user_logs(
        self: "DatabaseManager",
        user_id: str,
        limit: int = 50,
        guild_ids: Optional[Sequence[str]] = None,
    ) -> List[ActivityLogEntry]:
        entries, _ = self.get_logs(LogFilter(user_id=str(user_id), limit=limit, guild_ids=guild_ids))
        return entries

    def get_recent_logs(
        self: "DatabaseManager",
        hours: int = 24,
        limit: int = 100,
        guild_ids: Optional[Sequence[str]] = None,
    ) -> List[ActivityLogEntry]:
        since = self._now() - timedelta(hours=hours)
        entries, _ = self.get_logs(LogFilter(start_date=since, limit=limit, guild_ids=guild_ids))
        return entries

    def get_activity_stats(
        self: "DatabaseManager",
        hours: int = 24,
        guild_ids: Optional[Sequence[str]] = None,
    ) -> ActivityStats:
        """
        Aggregate counts over the trailing window.

        success_rate_percent is 0 when the window holds no entries.
        """
        since = self._now() - timedelta(hours=hours)
        where_clause, params = LogFilter(start_date=since, guild_ids=guild_ids).build_where()
        params = tuple(params)

        totals = self.fetchone(
            f"""SELECT COUNT(*) AS total,
                       COUNT(DISTINCT user_id) AS actors,
                       COALESCE(SUM(success), 0) AS succeeded
                FROM dashboard_activity_logs
                WHERE {where_clause}""",
            params,
        )

        by_kind = self.fetchall(
            f"""SELECT action_type, COUNT(*) AS count
                FROM dashboard_activity_logs
                WHERE {where_clause}
                GROUP BY action_type
                ORDER BY count DESC""",
            params,
        )

        by_page = self.fetchall(
            f"""SELECT page, COUNT(*) AS count
                FROM dashboard_activity_logs
                WHERE {where_clause}
                GROUP BY page
                ORDER BY count DESC""",
            params,
        )

        total = totals["total"] if totals else 0
        succeeded = totals["succeeded"] if totals else 0

        return ActivityStats(
            hours=hours,
            total_actions=total,
            unique_actors=totals["actors"] if totals else 0,
            actions_by_kind={row["action_type"]: row["count"] for row in by_kind},
            actions_by_page={row["page"]: row["count"] for row in by_page},
            success_rate_percent=round(succeeded * 100.0 / total, 2) if total else 0.0,
        )
