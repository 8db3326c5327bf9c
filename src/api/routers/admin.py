"""
ModBoard - Admin Router
=======================

Permission management for guild admins.
"""

import json
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request

from src.core.logger import logger
from src.core.permissions import dump_permissions, parse_permissions
from src.core.database import ActivityLogEntry, PersistenceError
from src.api.context import AppContext, get_context
from src.api.dependencies import AuthContext, authenticate
from src.api.errors import APIError, ErrorCode, bad_request, forbidden
from src.api.middleware.rate_limit import get_client_ip
from src.api.models.admin import PermissionGrantResponse, PermissionUpdateRequest
from src.api.models.base import APIResponse
from src.api.services.permissions import is_admin, permissions_for_update, role_label


router = APIRouter(prefix="/admin", tags=["Admin"])


def _require_guild_admin(auth: AuthContext, ctx: AppContext, guild_id: str) -> None:
    """403 unless the caller is admin in guild_id and its token allows that guild."""
    if auth.guild_id and auth.guild_id != str(guild_id):
        raise forbidden("Token is scoped to another server", code=ErrorCode.AUTH_NOT_ADMIN)

    if not is_admin(ctx.resolver.resolve_for_guild(auth.user_id, guild_id)):
        logger.warning("Admin Action Denied", [
            ("User ID", auth.user_id),
            ("Guild ID", str(guild_id)),
        ])
        raise forbidden(code=ErrorCode.AUTH_NOT_ADMIN)


@router.get("/users", response_model=APIResponse[List[Dict[str, Any]]])
async def list_users(
    guild_id: str = Query(..., alias="guildId", min_length=1),
    auth: AuthContext = Depends(authenticate),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[List[Dict[str, Any]]]:
    """Every user with a non-empty grant in the guild."""
    _require_guild_admin(auth, ctx, guild_id)

    grants = ctx.db.list_dashboard_permissions(guild_id)
    data = []
    for grant in grants:
        item = grant.to_dict()
        item["role"] = role_label(grant.permissions)
        data.append(item)
    return APIResponse(data=data)


@router.put("/users/{user_id}", response_model=APIResponse[PermissionGrantResponse])
async def update_user_permissions(
    user_id: str,
    body: PermissionUpdateRequest,
    request: Request,
    auth: AuthContext = Depends(authenticate),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[PermissionGrantResponse]:
    """
    Replace a user's permissions in one guild.

    A role preset wins over the permission list. The change is written to
    the activity log with the old and new sets.
    """
    guild_id = body.guild_id
    _require_guild_admin(auth, ctx, guild_id)

    try:
        requested = parse_permissions(body.permissions or [])
    except ValueError as e:
        raise bad_request(ErrorCode.VALIDATION_INVALID_PERMISSION, message=str(e))

    new_permissions = permissions_for_update(requested, body.role, body.dashboard_access)
    old_permissions = ctx.db.get_dashboard_permissions(user_id, guild_id)

    try:
        ctx.db.save_dashboard_permissions(user_id, guild_id, new_permissions)
    except PersistenceError:
        raise APIError(ErrorCode.SERVER_DATABASE_ERROR)

    ctx.db.log_activity(ActivityLogEntry(
        user_id=auth.user_id,
        action_type="update_permissions",
        page="admin",
        guild_id=str(guild_id),
        target_type="user",
        target_id=str(user_id),
        old_value=json.dumps(dump_permissions(old_permissions)),
        new_value=json.dumps(dump_permissions(new_permissions)),
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    ))
    request.state.activity_logged = True

    logger.tree("Dashboard Permissions Updated", [
        ("By", auth.user_id),
        ("User ID", str(user_id)),
        ("Guild ID", str(guild_id)),
        ("Role", body.role or "custom"),
    ], emoji="🛡️")

    return APIResponse(
        data=PermissionGrantResponse(
            user_id=str(user_id),
            guild_id=str(guild_id),
            permissions=dump_permissions(new_permissions),
            role=role_label(new_permissions),
        ),
    )


__all__ = ["router"]
