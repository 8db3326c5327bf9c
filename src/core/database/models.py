"""
ModBoard - Database Record Types
================================

Dataclasses for permission grants, activity log entries, log filters and
activity statistics.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from src.core.permissions import Permission, dump_permissions


# =============================================================================
# Constants
# =============================================================================

DASHBOARD_GUILD_ID = "dashboard"
"""Guild id stored on entries that are not scoped to a Discord server."""

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
"""Stored timestamp format (UTC). Lexical order matches time order."""

MAX_QUERY_LIMIT = 500


# =============================================================================
# Permission Grant
# =============================================================================

@dataclass
class PermissionGrant:
    """One (user, guild) permission row."""

    user_id: str
    guild_id: str
    permissions: Set[Permission] = field(default_factory=set)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "guild_id": self.guild_id,
            "permissions": dump_permissions(self.permissions),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# =============================================================================
# Activity Log Entry
# =============================================================================

@dataclass
class ActivityLogEntry:
    """
    A single audit record.

    id and created_at are assigned by the store. guild_id defaults to the
    non-guild sentinel.
    """

    user_id: str
    action_type: str
    page: str
    guild_id: str = DASHBOARD_GUILD_ID
    username: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def dedup_key(self) -> Tuple[str, str, str, Optional[str], Optional[str]]:
        return (self.user_id, self.action_type, self.page, self.target_type, self.target_id)

    @classmethod
    def from_row(cls, row) -> "ActivityLogEntry":
        return cls(
            id=row["id"],
            guild_id=row["guild_id"],
            user_id=row["user_id"],
            username=row["username"],
            action_type=row["action_type"],
            page=row["page"],
            target_type=row["target_type"],
            target_id=row["target_id"],
            old_value=row["old_value"],
            new_value=row["new_value"],
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            details=row["details"],
            success=bool(row["success"]),
            error_message=row["error_message"],
            created_at=row["created_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Log Filter
# =============================================================================

@dataclass
class LogFilter:
    """
    Parameterized filter for activity log queries.

    Column names are fixed here; every value is bound as a parameter.
    Dates are inclusive and compared as stored UTC timestamps.
    """

    user_id: Optional[str] = None
    action_type: Optional[str] = None
    page: Optional[str] = None
    target_type: Optional[str] = None
    success: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    guild_ids: Optional[Sequence[str]] = None
    limit: int = 50
    offset: int = 0

    def build_where(self) -> Tuple[str, List[Any]]:
        """Return (where_clause, params) for this filter."""
        conditions: List[str] = []
        params: List[Any] = []

        for column in ("user_id", "action_type", "page", "target_type"):
            value = getattr(self, column)
            if value:
                conditions.append(f"{column} = ?")
                params.append(value)

        if self.success is not None:
            conditions.append("success = ?")
            params.append(1 if self.success else 0)

        if self.start_date:
            conditions.append("created_at >= ?")
            params.append(to_storage_timestamp(self.start_date))

        if self.end_date:
            conditions.append("created_at <= ?")
            params.append(to_storage_timestamp(self.end_date))

        if self.guild_ids is not None:
            if not self.guild_ids:
                # Restricted to no guilds at all
                conditions.append("0 = 1")
            else:
                placeholders = ",".join("?" * len(self.guild_ids))
                conditions.append(f"guild_id IN ({placeholders})")
                params.extend(self.guild_ids)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        return where_clause, params

    @property
    def bounded_limit(self) -> int:
        return max(1, min(self.limit, MAX_QUERY_LIMIT))

    @property
    def bounded_offset(self) -> int:
        return max(0, self.offset)


# =============================================================================
# Activity Stats
# =============================================================================

@dataclass
class ActivityStats:
    """Aggregate counts over a trailing window."""

    hours: int
    total_actions: int = 0
    unique_actors: int = 0
    actions_by_kind: Dict[str, int] = field(default_factory=dict)
    actions_by_page: Dict[str, int] = field(default_factory=dict)
    success_rate_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Helpers
# =============================================================================

def to_storage_timestamp(value: datetime) -> str:
    """
    Format a datetime for storage and comparison.

    Aware datetimes are converted to UTC. Naive ones are assumed to be UTC.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


__all__ = [
    "DASHBOARD_GUILD_ID",
    "TIMESTAMP_FORMAT",
    "MAX_QUERY_LIMIT",
    "PermissionGrant",
    "ActivityLogEntry",
    "LogFilter",
    "ActivityStats",
    "to_storage_timestamp",
]
