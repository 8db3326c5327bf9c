"""
ModBoard - Dashboard Permissions Mixin
======================================

Per (user, guild) permission grants stored as a JSON token list.
"""

import json
import sqlite3
from typing import TYPE_CHECKING, Iterable, List, Optional, Set

from src.core.logger import logger
from src.core.permissions import Permission, dump_permissions, load_permissions
from src.core.database.base import PersistenceError, _safe_json_loads
from src.core.database.models import PermissionGrant

if TYPE_CHECKING:
    from src.core.database.manager import DatabaseManager


class PermissionsMixin:
    """Mixin for dashboard permission grants."""

    def get_permission_grant(
        self: "DatabaseManager",
        user_id: str,
        guild_id: str,
    ) -> Optional[PermissionGrant]:
        """
        Get the grant row for a user in a guild.

        Returns:
            None when no row exists. A grant with an empty set means the
            user was explicitly revoked.
        """
        row = self.fetchone(
            """SELECT user_id, guild_id, permissions, created_at, updated_at
               FROM dashboard_permissions
               WHERE user_id = ? AND guild_id = ?""",
            (str(user_id), str(guild_id)),
        )
        if not row:
            return None
        return PermissionGrant(
            user_id=row["user_id"],
            guild_id=row["guild_id"],
            permissions=load_permissions(_safe_json_loads(row["permissions"])),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_dashboard_permissions(
        self: "DatabaseManager",
        user_id: str,
        guild_id: str,
    ) -> Set[Permission]:
        """Get a user's permissions in a guild. Empty set when none exist."""
        grant = self.get_permission_grant(user_id, guild_id)
        return grant.permissions if grant else set()

    def save_dashboard_permissions(
        self: "DatabaseManager",
        user_id: str,
        guild_id: str,
        permissions: Iterable[Permission],
    ) -> None:
        """
        Replace a user's permission set in a guild.

        The whole set is overwritten, never merged. Saving an empty set
        revokes access but keeps the row.

        Raises:
            PersistenceError: On storage failure.
        """
        tokens = dump_permissions(permissions)
        now = self._timestamp()

        try:
            self.execute(
                """INSERT INTO dashboard_permissions
                       (user_id, guild_id, permissions, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(user_id, guild_id) DO UPDATE SET
                       permissions = excluded.permissions,
                       updated_at = excluded.updated_at""",
                (str(user_id), str(guild_id), json.dumps(tokens), now, now),
            )
        except sqlite3.Error as e:
            logger.error("Failed To Save Dashboard Permissions", [
                ("User ID", str(user_id)),
                ("Guild ID", str(guild_id)),
                ("Error", str(e)[:100]),
            ])
            raise PersistenceError(str(e)) from e

        logger.tree("Dashboard Permissions Saved", [
            ("User ID", str(user_id)),
            ("Guild ID", str(guild_id)),
            ("Permissions", ", ".join(tokens) or "none"),
        ], emoji="🔑")

    def list_dashboard_permissions(
        self: "DatabaseManager",
        guild_id: str,
    ) -> List[PermissionGrant]:
        """Get every user with a non-empty permission set in a guild."""
        rows = self.fetchall(
            """SELECT user_id, guild_id, permissions, created_at, updated_at
               FROM dashboard_permissions
               WHERE guild_id = ? AND permissions != '[]'
               ORDER BY updated_at DESC""",
            (str(guild_id),),
        )

        grants = []
        for row in rows:
            permissions = load_permissions(_safe_json_loads(row["permissions"]))
            if not permissions:
                continue
            grants.append(PermissionGrant(
                user_id=row["user_id"],
                guild_id=row["guild_id"],
                permissions=permissions,
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            ))
        return grants
