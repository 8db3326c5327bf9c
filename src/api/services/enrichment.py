"""
ModBoard - Log Enrichment
=========================

Turns stored activity rows into display-ready dicts: usernames filled in,
action and page codes mapped to labels, timestamps shown in the display
timezone.

DESIGN:
    The Discord user lookup is the slowest step of a log listing, so each
    distinct actor is looked up once per request, concurrently, with a
    timeout, and the result (including fallbacks) is cached for the life of
    the process in a bounded LRU cache.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import discord
from zoneinfo import ZoneInfo

from src.core.logger import logger
from src.core.database import ActivityLogEntry
from src.core.database.models import TIMESTAMP_FORMAT
from src.api.services.backfill import BackfillQueue
from src.utils.async_utils import gather_with_logging
from src.utils.cache import TTLCache


# =============================================================================
# Label Tables
# =============================================================================

ACTION_LABELS: Dict[str, str] = {
    "memberVerificationSuccess": "Verification Success",
    "memberVerificationFailed": "Verification Failed",
    "login": "User Login",
    "logout": "User Logout",
    "export_data": "Data Export",
    "view_transcript": "View Transcript",
    "manage_warnings": "Manage Warnings",
    "manage_tickets": "Manage Tickets",
    "manage_settings": "Manage Settings",
    "update_server_settings": "Update Server Settings",
    "update_settings": "Update Settings",
    "update_permissions": "Update Permissions",
    "create_ticket": "Create Ticket",
    "create_warning": "Create Warning",
    "delete_ticket": "Delete Ticket",
    "delete_warning": "Delete Warning",
    "ban_user": "Ban User",
    "clean_logs": "Clean Logs",
}

PAGE_LABELS: Dict[str, str] = {
    "dashboard": "Dashboard",
    "login": "Login",
    "tickets": "Tickets",
    "warnings": "Warnings",
    "servers": "Servers",
    "logs": "Activity Logs",
    "dashboard-logs": "Activity Logs",
    "settings": "Settings",
    "profile": "Profile",
    "members": "Members",
    "moderation": "Moderation",
    "channels": "Channels",
    "roles": "Roles",
    "admin": "Admin Panel",
}

SPECIAL_USERNAMES: Dict[str, str] = {
    "dashboard": "Dashboard",
    "anonymous": "Anonymous",
}

DISPLAY_FORMAT = "%d/%m/%Y at %H:%M:%S"


# =============================================================================
# Pure Helpers
# =============================================================================

def fallback_username(user_id: str) -> str:
    """Deterministic placeholder: "User " plus the last 4 id characters."""
    return f"User {str(user_id)[-4:]}"


def action_label(action_type: str) -> str:
    """Mapped label, or the token title-cased with underscores as spaces."""
    if action_type in ACTION_LABELS:
        return ACTION_LABELS[action_type]
    return action_type.replace("_", " ").title()


def page_label(page: str) -> str:
    return PAGE_LABELS.get(page, page)


def format_display_time(created_at: Optional[str], tz: ZoneInfo) -> Optional[str]:
    """Convert a stored UTC timestamp to "DD/MM/YYYY at HH:MM:SS" in tz."""
    if not created_at:
        return None
    try:
        stored = datetime.strptime(created_at, TIMESTAMP_FORMAT)
    except ValueError:
        try:
            stored = datetime.fromisoformat(created_at)
        except ValueError:
            return created_at
    if stored.tzinfo is None:
        stored = stored.replace(tzinfo=timezone.utc)
    return stored.astimezone(tz).strftime(DISPLAY_FORMAT)


# =============================================================================
# Username Resolution
# =============================================================================

class UsernameResolver:
    """
    Resolves Discord user ids to usernames through a shared cache.

    Fallback names are cached as well, so an id that fails once is not
    looked up again while it stays in the cache.
    """

    def __init__(
        self,
        bot_provider: Callable[[], Optional[Any]],
        cache: TTLCache[str, str],
        timeout: float = 3.0,
    ) -> None:
        self._bot_provider = bot_provider
        self._cache = cache
        self._timeout = timeout
        self.lookups = 0

    @property
    def cache(self) -> TTLCache[str, str]:
        return self._cache

    async def resolve(self, user_id: str) -> str:
        user_id = str(user_id)

        cached = self._cache.get(user_id)
        if cached is not None:
            return cached

        name = await self._lookup(user_id)
        self._cache.set(user_id, name)
        return name

    async def _lookup(self, user_id: str) -> str:
        special = SPECIAL_USERNAMES.get(user_id.lower())
        if special:
            return special

        if not user_id.isdigit():
            return fallback_username(user_id)

        bot = self._bot_provider()
        if bot is None:
            return fallback_username(user_id)

        user = bot.get_user(int(user_id))
        if user is not None:
            return user.name

        self.lookups += 1
        try:
            user = await asyncio.wait_for(bot.fetch_user(int(user_id)), timeout=self._timeout)
            return user.name
        except asyncio.TimeoutError:
            logger.debug("Username Lookup Timeout", [
                ("User ID", user_id),
                ("Timeout", f"{self._timeout}s"),
            ])
        except discord.NotFound:
            logger.debug("Username Lookup Not Found", [("User ID", user_id)])
        except discord.HTTPException as e:
            logger.warning("Username Lookup Failed", [
                ("User ID", user_id),
                ("Status", str(getattr(e, "status", "unknown"))),
            ])
        except Exception as e:
            logger.warning("Username Lookup Error", [
                ("User ID", user_id),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
        return fallback_username(user_id)

    def is_fallback(self, user_id: str, name: str) -> bool:
        return name == fallback_username(user_id) or name in SPECIAL_USERNAMES.values()


# =============================================================================
# Enricher
# =============================================================================

class LogEnricher:
    """Post-processes activity entries for display."""

    def __init__(
        self,
        resolver: UsernameResolver,
        display_tz: ZoneInfo,
        backfill: Optional[BackfillQueue] = None,
    ) -> None:
        self._resolver = resolver
        self._display_tz = display_tz
        self._backfill = backfill

    async def resolve_usernames(self, user_ids: Sequence[str]) -> Dict[str, str]:
        """Resolve distinct ids concurrently. Failures become placeholders."""
        unique_ids = list(dict.fromkeys(str(uid) for uid in user_ids))
        if not unique_ids:
            return {}

        results = await gather_with_logging(
            *[(f"Username Lookup {uid}", self._resolver.resolve(uid)) for uid in unique_ids],
            context="Log Enrichment",
        )

        names: Dict[str, str] = {}
        for uid, result in zip(unique_ids, results):
            if isinstance(result, BaseException) or not result:
                names[uid] = fallback_username(uid)
            else:
                names[uid] = result
        return names

    async def enrich(self, entries: Sequence[ActivityLogEntry]) -> List[Dict[str, Any]]:
        """
        Return display dicts for the entries, in the same order.

        Does not modify the entries or the store. Real resolved names are
        handed to the backfill queue.
        """
        missing = [e.user_id for e in entries if not e.username]
        names = await self.resolve_usernames(missing)

        if self._backfill is not None:
            for uid, name in names.items():
                if not self._resolver.is_fallback(uid, name):
                    self._backfill.submit(uid, name)

        enriched = []
        for entry in entries:
            data = entry.to_dict()
            data["username"] = entry.username or names.get(entry.user_id) or fallback_username(entry.user_id)
            data["action_label"] = action_label(entry.action_type)
            data["page_label"] = page_label(entry.page)
            data["status_display"] = "✅ Success" if entry.success else "❌ Failed"
            data["created_at_display"] = format_display_time(entry.created_at, self._display_tz)
            enriched.append(data)
        return enriched


__all__ = [
    "ACTION_LABELS",
    "PAGE_LABELS",
    "UsernameResolver",
    "LogEnricher",
    "fallback_username",
    "action_label",
    "page_label",
    "format_display_time",
]
