"""
ModBoard - Auth Router
======================

Dashboard login through Discord OAuth2 and the caller's permission summary.
"""

from fastapi import APIRouter, Depends, Request

from src.core.logger import logger
from src.core.database import ActivityLogEntry, DASHBOARD_GUILD_ID
from src.core.permissions import dump_permissions
from src.api.context import AppContext, get_context
from src.api.dependencies import AuthContext, authenticate
from src.api.errors import APIError, ErrorCode, bad_request, forbidden, unauthorized
from src.api.middleware.rate_limit import get_client_ip
from src.api.models.auth import LoginResponse, MeResponse, OAuthCallbackRequest
from src.api.models.base import APIResponse
from src.api.services.auth import OAuthError
from src.api.services.permissions import is_admin, role_label


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=APIResponse[MeResponse])
async def get_me(
    auth: AuthContext = Depends(authenticate),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[MeResponse]:
    """
    Permissions of the authenticated caller, merged and per guild.

    403 when the caller holds no permission in any visible guild.
    """
    if not auth.server_permissions:
        logger.debug("No Dashboard Access", [("User ID", auth.user_id)])
        raise forbidden(code=ErrorCode.AUTH_NO_DASHBOARD_ACCESS)

    merged = set()
    for perms in auth.server_permissions.values():
        merged |= perms

    username = await ctx.usernames.resolve(auth.user_id)

    return APIResponse(
        data=MeResponse(
            user_id=auth.user_id,
            username=username,
            is_admin=auth.is_admin,
            role=role_label(merged),
            permissions=auth.all_permissions,
            server_permissions={
                guild_id: dump_permissions(perms)
                for guild_id, perms in sorted(auth.server_permissions.items())
            },
            accessible_servers=auth.accessible_servers,
        ),
    )


@router.post("/discord/callback", response_model=APIResponse[LoginResponse])
async def discord_callback(
    body: OAuthCallbackRequest,
    request: Request,
    ctx: AppContext = Depends(get_context),
) -> APIResponse[LoginResponse]:
    """
    Exchange a Discord OAuth2 code for a dashboard token.

    Each code is accepted once. The token is issued even when the user has
    no grants yet; /auth/me reports that case.
    """
    client_ip = get_client_ip(request)

    if not body.code:
        raise bad_request(ErrorCode.VALIDATION_MISSING_FIELD, details={"field": "code"})

    if not ctx.auth.claim_code(body.code):
        logger.warning("OAuth Code Reused", [
            ("IP", client_ip),
            ("Code", f"{body.code[:10]}..."),
        ])
        raise APIError(ErrorCode.AUTH_CODE_REUSED)

    try:
        user = await ctx.auth.exchange_code(body.code)
    except OAuthError as e:
        logger.warning("Dashboard Login Failed", [
            ("IP", client_ip),
            ("Reason", str(e)[:100]),
        ])
        raise unauthorized(ErrorCode.AUTH_OAUTH_FAILED)

    if body.guild_id:
        perms = ctx.resolver.resolve_for_guild(user.id, body.guild_id)
        server_permissions = {str(body.guild_id): perms} if perms else {}
    else:
        server_permissions = ctx.resolver.resolve_across_all_guilds(user.id)

    token, expires_at = ctx.auth.issue_token(user.id, body.guild_id)
    ctx.usernames.cache.set(user.id, user.username)

    ctx.db.log_activity(ActivityLogEntry(
        user_id=user.id,
        username=user.username,
        action_type="login",
        page="login",
        guild_id=str(body.guild_id) if body.guild_id else DASHBOARD_GUILD_ID,
        ip_address=client_ip,
        user_agent=request.headers.get("user-agent"),
    ))
    request.state.activity_logged = True

    admin = any(is_admin(perms) for perms in server_permissions.values())
    logger.tree("Dashboard Login", [
        ("User", f"{user.username} ({user.id})"),
        ("IP", client_ip),
        ("Guilds", str(len(server_permissions))),
        ("Admin", "Yes" if admin else "No"),
    ], emoji="🔓")

    return APIResponse(
        data=LoginResponse(
            token=token,
            expires_at=expires_at,
            user=user.to_dict(),
            is_admin=admin,
            accessible_servers=ctx.resolver.accessible_servers(server_permissions),
        ),
    )


__all__ = ["router"]
