"""
ModBoard - Dashboard Permission Tokens
======================================

Closed set of permission tokens that can be granted per (user, guild).

Tokens are stored as plain strings, so the enum subclasses str: a
Permission compares and hashes equal to its raw token.
"""

from enum import Enum
from typing import Iterable, List, Set

from src.core.logger import logger


class Permission(str, Enum):
    """A single dashboard capability."""

    ADMIN = "admin"
    SYSTEM_ADMIN = "system_admin"
    DASHBOARD_ACCESS = "dashboard_access"
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_LOGS = "view_logs"
    VIEW_TICKETS = "view_tickets"
    VIEW_WARNINGS = "view_warnings"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_USERS = "manage_users"
    MANAGE_TICKETS = "manage_tickets"
    MANAGE_WARNINGS = "manage_warnings"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_SERVERS = "manage_servers"
    MANAGE_MEMBERS = "manage_members"
    MANAGE_ROLES = "manage_roles"
    MANAGE_DASHBOARD = "manage_dashboard"
    MODERATE_USERS = "moderate_users"

    def __str__(self) -> str:
        return self.value


ADMIN_PERMISSIONS = frozenset({Permission.ADMIN, Permission.SYSTEM_ADMIN})


def parse_permissions(tokens: Iterable[str]) -> Set[Permission]:
    """
    Convert raw tokens to permissions.

    Raises:
        ValueError: If any token is unknown. The message names it.
    """
    result: Set[Permission] = set()
    for token in tokens:
        try:
            result.add(Permission(token))
        except ValueError:
            raise ValueError(f"Unknown permission: {token}")
    return result


def load_permissions(tokens: Iterable[str]) -> Set[Permission]:
    """
    Convert stored tokens to permissions, dropping unknown ones.

    Used on read paths where older rows may carry retired tokens.
    """
    result: Set[Permission] = set()
    for token in tokens:
        try:
            result.add(Permission(token))
        except ValueError:
            logger.warning("Unknown Stored Permission Dropped", [
                ("Token", str(token)[:50]),
            ])
    return result


def dump_permissions(permissions: Iterable[Permission]) -> List[str]:
    """Serialize to a sorted, duplicate-free list of raw tokens."""
    return sorted({Permission(p).value for p in permissions})


__all__ = [
    "Permission",
    "ADMIN_PERMISSIONS",
    "parse_permissions",
    "load_permissions",
    "dump_permissions",
]
