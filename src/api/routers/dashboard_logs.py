"""
ModBoard - Dashboard Logs Router
================================

Activity log viewer, frontend log submission and retention cleanup.

Reads are restricted to guilds where the caller holds view_logs. Entries
that belong to no guild are visible to admins only.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.status import HTTP_201_CREATED

from src.core.logger import logger
from src.core.permissions import Permission
from src.core.database import ActivityLogEntry, DASHBOARD_GUILD_ID, LogFilter, PersistenceError
from src.api.context import AppContext, get_context
from src.api.dependencies import AuthContext, authenticate, require_admin, require_permission
from src.api.errors import APIError, ErrorCode, forbidden
from src.api.middleware.rate_limit import get_client_ip
from src.api.models.base import APIResponse, PaginatedResponse, PaginationMeta
from src.api.models.logs import CleanupResponse, LogCreateRequest, LogCreateResponse


router = APIRouter(prefix="/dashboard-logs", tags=["Dashboard Logs"])

require_view_logs = require_permission(Permission.VIEW_LOGS)


def _visible_guilds(auth: AuthContext) -> List[str]:
    guild_ids = auth.guilds_with(Permission.VIEW_LOGS)
    if auth.is_admin:
        guild_ids.append(DASHBOARD_GUILD_ID)
    return guild_ids


# =============================================================================
# Read Endpoints
# =============================================================================

@router.get("", response_model=PaginatedResponse[Dict[str, Any]])
async def list_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user_id: Optional[str] = None,
    action_type: Optional[str] = None,
    page_name: Optional[str] = None,
    target_type: Optional[str] = None,
    success: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    auth: AuthContext = Depends(require_view_logs),
    ctx: AppContext = Depends(get_context),
) -> PaginatedResponse[Dict[str, Any]]:
    """Filtered, paginated activity log, newest first."""
    limit = min(limit, ctx.api_config.max_page_size)
    log_filter = LogFilter(
        user_id=user_id,
        action_type=action_type,
        page=page_name,
        target_type=target_type,
        success=success,
        start_date=start_date,
        end_date=end_date,
        guild_ids=_visible_guilds(auth),
        limit=limit,
        offset=(page - 1) * limit,
    )

    entries, total = ctx.db.get_logs(log_filter)
    data = await ctx.enricher.enrich(entries)

    logger.debug("Dashboard Logs Fetched", [
        ("User ID", auth.user_id),
        ("Page", str(page)),
        ("Returned", str(len(data))),
        ("Total", str(total)),
    ])

    return PaginatedResponse(
        data=data,
        pagination=PaginationMeta.build(total=total, page=page, limit=limit),
    )


@router.get("/users/{user_id}", response_model=APIResponse[List[Dict[str, Any]]])
async def user_logs(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    auth: AuthContext = Depends(require_view_logs),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[List[Dict[str, Any]]]:
    entries = ctx.db.get_user_logs(user_id, limit=limit, guild_ids=_visible_guilds(auth))
    return APIResponse(data=await ctx.enricher.enrich(entries))


@router.get("/recent", response_model=APIResponse[List[Dict[str, Any]]])
async def recent_logs(
    hours: int = Query(24, ge=1, le=24 * 365),
    limit: int = Query(100, ge=1, le=500),
    auth: AuthContext = Depends(require_view_logs),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[List[Dict[str, Any]]]:
    entries = ctx.db.get_recent_logs(hours=hours, limit=limit, guild_ids=_visible_guilds(auth))
    return APIResponse(data=await ctx.enricher.enrich(entries))


@router.get("/stats", response_model=APIResponse[Dict[str, Any]])
async def log_stats(
    hours: int = Query(24, ge=1, le=24 * 365),
    auth: AuthContext = Depends(require_view_logs),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[Dict[str, Any]]:
    """Counts by action and page over the trailing window."""
    stats = ctx.db.get_activity_stats(hours=hours, guild_ids=_visible_guilds(auth))
    return APIResponse(data=stats.to_dict())


# =============================================================================
# Write Endpoints
# =============================================================================

def _check_log_target(auth: AuthContext, ctx: AppContext, guild_id: str) -> None:
    """403 unless the caller holds a grant in the guild the entry belongs to."""
    if auth.guild_id and guild_id not in (auth.guild_id, DASHBOARD_GUILD_ID):
        raise forbidden("Token is scoped to another server")

    if guild_id == DASHBOARD_GUILD_ID:
        allowed = bool(auth.server_permissions)
    else:
        allowed = bool(ctx.resolver.resolve_for_guild(auth.user_id, guild_id))

    if not allowed:
        logger.warning("Log Submission Denied", [
            ("User ID", auth.user_id),
            ("Guild ID", guild_id),
        ])
        raise forbidden(f"No dashboard permissions for server {guild_id}")


@router.post("", status_code=HTTP_201_CREATED, response_model=APIResponse[LogCreateResponse])
async def create_log(
    body: LogCreateRequest,
    request: Request,
    auth: AuthContext = Depends(authenticate),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[LogCreateResponse]:
    """
    Record an entry sent by the dashboard frontend.

    The caller needs a grant in the entry's guild. Token callers always log
    as themselves; only API-key services may log on behalf of another user.
    logged is False when the entry duplicates one from the last few
    seconds.
    """
    guild_id = str(body.guild_id)
    _check_log_target(auth, ctx, guild_id)

    user_id, username = body.user_id, body.username
    if not auth.is_service and user_id != auth.user_id:
        logger.warning("Log Submission Actor Replaced", [
            ("Caller", auth.user_id),
            ("Requested", user_id[:30]),
        ])
        user_id, username = auth.user_id, None

    logged = ctx.db.log_activity(ActivityLogEntry(
        user_id=user_id,
        action_type=body.action_type,
        page=body.page,
        guild_id=guild_id,
        username=username,
        target_type=body.target_type,
        target_id=body.target_id,
        old_value=body.old_value,
        new_value=body.new_value,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        details=body.details,
        success=body.success,
        error_message=body.error_message,
    ))
    request.state.activity_logged = True

    return APIResponse(data=LogCreateResponse(logged=logged))


@router.delete("/cleanup", response_model=APIResponse[CleanupResponse])
async def cleanup_logs(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=3650),
    auth: AuthContext = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[CleanupResponse]:
    """
    Delete entries older than days (default: configured retention).

    Admins purge only the guilds they administer. API-key services purge
    every guild, including entries that belong to no guild.
    """
    days = days or ctx.config.retention_days
    guild_ids = None if auth.is_service else auth.admin_guilds()

    try:
        deleted = ctx.db.clean_old_logs(days, guild_ids=guild_ids)
    except PersistenceError:
        raise APIError(ErrorCode.SERVER_DATABASE_ERROR)

    ctx.db.log_activity(ActivityLogEntry(
        user_id=auth.user_id,
        action_type="clean_logs",
        page="logs",
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        details=f"Deleted {deleted} entries older than {days} days",
    ))
    request.state.activity_logged = True

    return APIResponse(data=CleanupResponse(deleted=deleted, days=days))


__all__ = ["router"]
