"""
ModBoard - API Dependencies
===========================

FastAPI dependency injection utilities: authentication, permission checks
and the bot reference.

Authentication accepts either:
    - x-api-key matching the configured pre-shared key, plus x-user-id
    - Authorization: Bearer <jwt>
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.core.logger import logger
from src.core.permissions import Permission, dump_permissions
from src.api.context import AppContext, get_context
from src.api.errors import ErrorCode, forbidden, unauthorized
from src.api.middleware.rate_limit import get_client_ip
from src.api.services.auth import TokenError
from src.api.services.permissions import has_permission, is_admin


# =============================================================================
# Security
# =============================================================================

security = HTTPBearer(auto_error=False)

AUTH_METHOD_API_KEY = "api_key"
AUTH_METHOD_JWT = "jwt"


# =============================================================================
# Bot Reference
# =============================================================================

def set_bot(ctx: AppContext, bot: Any) -> None:
    """Attach the gateway client to an app context."""
    ctx.bot = bot


def get_bot(ctx: AppContext = Depends(get_context)) -> Optional[Any]:
    """The gateway client, or None while it is not attached."""
    return ctx.bot


# =============================================================================
# Auth Context
# =============================================================================

@dataclass
class AuthContext:
    """The authenticated caller and what it may do, per guild."""

    user_id: str
    auth_method: str
    guild_id: Optional[str] = None
    server_permissions: Dict[str, Set[Permission]] = field(default_factory=dict)
    accessible_servers: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return any(is_admin(perms) for perms in self.server_permissions.values())

    @property
    def all_permissions(self) -> List[str]:
        """Union across guilds, sorted and deduplicated."""
        merged: Set[Permission] = set()
        for perms in self.server_permissions.values():
            merged |= perms
        return dump_permissions(merged)

    def has(self, permission: Permission) -> bool:
        return any(has_permission(perms, permission) for perms in self.server_permissions.values())

    def guilds_with(self, permission: Permission) -> List[str]:
        """Guild ids where the permission is granted directly or via admin."""
        return sorted(
            guild_id for guild_id, perms in self.server_permissions.items()
            if has_permission(perms, permission)
        )

    def is_admin_in(self, guild_id: str) -> bool:
        return is_admin(self.server_permissions.get(str(guild_id), set()))

    def admin_guilds(self) -> List[str]:
        return sorted(guild_id for guild_id, perms in self.server_permissions.items() if is_admin(perms))

    @property
    def is_service(self) -> bool:
        """True for trusted callers using the pre-shared API key."""
        return self.auth_method == AUTH_METHOD_API_KEY


def _requested_guild(request: Request) -> Optional[str]:
    return request.query_params.get("guildId") or request.query_params.get("guild_id")


# =============================================================================
# Authentication Dependencies
# =============================================================================

async def authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ctx: AppContext = Depends(get_context),
) -> AuthContext:
    """
    Authenticate the caller and resolve its permissions.

    Raises 401 when no credentials are accepted. A caller without any grant
    still authenticates, with empty server_permissions.
    """
    api_key = request.headers.get("x-api-key")
    guild_id: Optional[str] = None

    if api_key and ctx.auth.check_api_key(api_key):
        user_id = request.headers.get("x-user-id")
        if not user_id:
            logger.warning("API Key Request Without User ID", [
                ("IP", get_client_ip(request)),
                ("Path", request.url.path),
            ])
            raise unauthorized(ErrorCode.AUTH_MISSING_USER_ID)
        method = AUTH_METHOD_API_KEY

    else:
        if credentials is None:
            raise unauthorized(ErrorCode.AUTH_MISSING_TOKEN)

        try:
            claims = ctx.auth.decode_token(credentials.credentials)
        except TokenError as e:
            logger.warning("Rejected Bearer Token", [
                ("IP", get_client_ip(request)),
                ("Path", request.url.path),
                ("Reason", str(e)[:100]),
            ])
            if e.expired:
                raise unauthorized(ErrorCode.AUTH_TOKEN_EXPIRED)
            raise unauthorized(ErrorCode.AUTH_INVALID_TOKEN)

        user_id = claims.user_id
        guild_id = claims.guild_id
        method = AUTH_METHOD_JWT

    guild_id = guild_id or _requested_guild(request)

    if guild_id:
        perms = ctx.resolver.resolve_for_guild(user_id, guild_id)
        server_permissions = {str(guild_id): perms} if perms else {}
    else:
        server_permissions = ctx.resolver.resolve_across_all_guilds(user_id)

    auth = AuthContext(
        user_id=str(user_id),
        auth_method=method,
        guild_id=str(guild_id) if guild_id else None,
        server_permissions=server_permissions,
        accessible_servers=ctx.resolver.accessible_servers(server_permissions),
    )
    request.state.auth = auth
    return auth


def require_permission(permission: Permission):
    """
    Factory for permission-based authorization.

    Usage:
        @router.get("/logs")
        async def list_logs(auth: AuthContext = Depends(require_permission(Permission.VIEW_LOGS))):
            ...
    """
    async def dependency(auth: AuthContext = Depends(authenticate)) -> AuthContext:
        if not auth.has(permission):
            logger.warning("Permission Denied", [
                ("User ID", auth.user_id),
                ("Required", permission.value),
                ("Guilds", str(len(auth.server_permissions))),
            ])
            raise forbidden(f"Permission '{permission.value}' required")
        return auth

    return dependency


async def require_admin(auth: AuthContext = Depends(authenticate)) -> AuthContext:
    """403 unless the caller is admin in at least one scoped guild."""
    if not auth.is_admin:
        logger.warning("Admin Access Denied", [
            ("User ID", auth.user_id),
        ])
        raise forbidden(code=ErrorCode.AUTH_NOT_ADMIN)
    return auth


__all__ = [
    "security",
    "AuthContext",
    "authenticate",
    "require_permission",
    "require_admin",
    "set_bot",
    "get_bot",
]
