"""
ModBoard - Activity Logging Middleware
======================================

Records meaningful dashboard actions in the activity log after the handler
has run.

Only authenticated requests are recorded, and only state-changing ones
plus a few sensitive reads (exports, transcripts). Handlers that write a
richer entry themselves set request.state.activity_logged to skip this.
"""

import re
from typing import Callable, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.logger import logger
from src.core.database import ActivityLogEntry, DASHBOARD_GUILD_ID
from src.api.config import API_PREFIX
from src.api.middleware.rate_limit import get_client_ip


# =============================================================================
# Action Mapping
# =============================================================================

# (method, path fragment, action type), first match wins
ACTION_RULES: Tuple[Tuple[str, str, str], ...] = (
    ("GET", "/export", "export_data"),
    ("GET", "/download", "export_data"),
    ("GET", "/transcript", "view_transcript"),
    ("POST", "/tickets", "create_ticket"),
    ("POST", "/warnings", "create_warning"),
    ("POST", "/ban", "ban_user"),
    ("POST", "/kick", "kick_user"),
    ("POST", "/mute", "mute_user"),
    ("PUT", "/settings", "update_server_settings"),
    ("PATCH", "/settings", "update_server_settings"),
    ("PUT", "/permissions", "update_permissions"),
    ("PATCH", "/permissions", "update_permissions"),
    ("PUT", "/admin/users", "update_permissions"),
    ("DELETE", "/tickets", "delete_ticket"),
    ("DELETE", "/warnings", "delete_warning"),
)

SKIP_PREFIXES = ("health", "auth", "dashboard-logs")

REDACTED_PARAMS = ("password", "token", "secret")

_ID_PATTERN = re.compile(r"^\d+$")


def _relative_segments(path: str) -> list:
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]
    return [segment for segment in path.split("/") if segment and segment != "api"]


def extract_page_name(path: str) -> str:
    """First path segment after the API prefix, or "dashboard"."""
    segments = _relative_segments(path)
    return segments[0] if segments else "dashboard"


def get_action_type(method: str, path: str) -> Optional[str]:
    """
    Map a request to an action type.

    Returns:
        None for reads that are not worth recording.
    """
    method = method.upper()
    path_lower = path.lower()

    for rule_method, fragment, action in ACTION_RULES:
        if method == rule_method and fragment in path_lower:
            return action

    if method in ("GET", "HEAD", "OPTIONS"):
        return None

    resource = next(
        (s for s in reversed(_relative_segments(path_lower)) if not _ID_PATTERN.match(s)),
        "resource",
    )
    return f"{method.lower()}_{resource.replace('-', '_')}"


def extract_target(path: str) -> Tuple[Optional[str], Optional[str]]:
    """(target_type, target_id) from a "/<resource>/<numeric id>" path."""
    segments = _relative_segments(path)
    for resource, value in zip(segments, segments[1:]):
        if _ID_PATTERN.match(value) and not _ID_PATTERN.match(resource):
            return resource.rstrip("s"), value
    return None, None


def redact_query(query: str) -> str:
    """Return the query string with sensitive values replaced."""
    if not query:
        return ""
    pairs = [
        (key, "[REDACTED]" if any(word in key.lower() for word in REDACTED_PARAMS) else value)
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return urlencode(pairs, safe="[]")


# =============================================================================
# Middleware
# =============================================================================

class ActivityLoggingMiddleware(BaseHTTPMiddleware):
    """Writes one activity entry per recorded request. Never stores bodies."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        page = extract_page_name(request.url.path)
        if page in SKIP_PREFIXES:
            return response

        auth = getattr(request.state, "auth", None)
        if auth is None or getattr(request.state, "activity_logged", False):
            return response

        action_type = get_action_type(request.method, request.url.path)
        if action_type is None:
            return response

        target_type, target_id = extract_target(request.url.path)
        guild_id = (
            request.query_params.get("guildId")
            or request.query_params.get("guild_id")
            or auth.guild_id
            or DASHBOARD_GUILD_ID
        )
        success = response.status_code < 400

        query = redact_query(request.url.query)
        details = f"{request.method} {request.url.path}"
        if query:
            details = f"{details}?{query}"

        entry = ActivityLogEntry(
            user_id=auth.user_id,
            action_type=action_type,
            page=page,
            guild_id=str(guild_id),
            target_type=target_type,
            target_id=target_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            details=details,
            success=success,
            error_message=None if success else f"HTTP {response.status_code}",
        )

        ctx = request.app.state.context
        if ctx.db.log_activity(entry):
            logger.debug("Dashboard Activity Recorded", [
                ("User ID", auth.user_id),
                ("Action", action_type),
                ("Page", page),
                ("Status", str(response.status_code)),
            ])

        return response


__all__ = [
    "ActivityLoggingMiddleware",
    "get_action_type",
    "extract_page_name",
    "extract_target",
    "redact_query",
]
