"""
ModBoard - Permission Resolver
==============================

Aggregates stored dashboard permissions for one guild or across every guild
the bot can currently see, and derives admin status and a display role.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from src.core.logger import logger
from src.core.permissions import ADMIN_PERMISSIONS, Permission, dump_permissions
from src.core.database import DatabaseManager


# =============================================================================
# Role Presets
# =============================================================================

ROLE_PRESETS: Dict[str, Set[Permission]] = {
    "admin": {
        Permission.DASHBOARD_ACCESS,
        Permission.VIEW_LOGS,
        Permission.MANAGE_WARNINGS,
        Permission.MANAGE_TICKETS,
        Permission.MANAGE_SERVERS,
        Permission.MANAGE_MEMBERS,
        Permission.VIEW_ANALYTICS,
        Permission.SYSTEM_ADMIN,
        Permission.MODERATE_USERS,
        Permission.MANAGE_ROLES,
    },
    "moderator": {
        Permission.DASHBOARD_ACCESS,
        Permission.VIEW_LOGS,
        Permission.MANAGE_WARNINGS,
        Permission.MANAGE_TICKETS,
        Permission.MODERATE_USERS,
    },
}


# =============================================================================
# Pure Helpers
# =============================================================================

def is_admin(tokens: Iterable[Permission]) -> bool:
    """True iff the set holds admin or system_admin."""
    return any(token in ADMIN_PERMISSIONS for token in tokens)


def has_permission(tokens: Iterable[Permission], permission: Permission) -> bool:
    """True if the permission is granted directly or through admin."""
    tokens = set(tokens)
    return permission in tokens or is_admin(tokens)


def role_label(tokens: Iterable[Permission]) -> str:
    """
    Coarse display role: admin, moderator or user.

    Display only. Access checks use has_permission/is_admin.
    """
    tokens = set(tokens)
    if Permission.SYSTEM_ADMIN in tokens:
        return "admin"
    if Permission.MANAGE_TICKETS in tokens:
        return "moderator"
    return "user"


def permissions_for_update(
    permissions: Optional[Iterable[Permission]],
    role: Optional[str],
    dashboard_access: bool = False,
) -> Set[Permission]:
    """
    Compute the grant to store for an admin-panel update.

    A known role replaces the list with its preset. Otherwise the custom
    list is used, plus dashboard_access when requested.
    """
    if role and role in ROLE_PRESETS:
        return set(ROLE_PRESETS[role])

    result = set(permissions or [])
    if dashboard_access:
        result.add(Permission.DASHBOARD_ACCESS)
    return result


# =============================================================================
# Resolver
# =============================================================================

class PermissionResolver:
    """
    Resolves a user's dashboard permissions.

    The gateway client is reached through a callable so a disconnected or
    not-yet-started bot simply resolves to no guilds.
    """

    def __init__(
        self,
        db: DatabaseManager,
        bot_provider: Callable[[], Optional[Any]],
    ) -> None:
        self._db = db
        self._bot_provider = bot_provider

    def resolve_for_guild(self, user_id: str, guild_id: str) -> Set[Permission]:
        return self._db.get_dashboard_permissions(str(user_id), str(guild_id))

    def _visible_guilds(self) -> List[Any]:
        bot = self._bot_provider()
        if bot is None:
            return []
        try:
            if not bot.is_ready():
                return []
            return list(bot.guilds)
        except Exception as e:
            logger.warning("Guild List Unavailable", [
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            return []

    def resolve_across_all_guilds(self, user_id: str) -> Dict[str, Set[Permission]]:
        """
        Map guild id to permissions for every visible guild with a grant.

        Returns an empty mapping when the bot is unavailable.
        """
        result: Dict[str, Set[Permission]] = {}
        for guild in self._visible_guilds():
            guild_id = str(guild.id)
            permissions = self.resolve_for_guild(user_id, guild_id)
            if permissions:
                result[guild_id] = permissions
        return result

    def accessible_servers(self, server_permissions: Dict[str, Set[Permission]]) -> List[Dict[str, Any]]:
        names = {str(g.id): getattr(g, "name", None) for g in self._visible_guilds()}
        return [
            {
                "id": guild_id,
                "name": names.get(guild_id) or guild_id,
                "permissions": dump_permissions(permissions),
                "is_admin": is_admin(permissions),
            }
            for guild_id, permissions in sorted(server_permissions.items())
        ]


__all__ = [
    "ROLE_PRESETS",
    "PermissionResolver",
    "is_admin",
    "has_permission",
    "role_label",
    "permissions_for_update",
]
