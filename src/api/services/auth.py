"""
ModBoard - Auth Service
=======================

JWT issue/verify, the pre-shared key check, and the Discord OAuth2 code
exchange used by the dashboard login.
"""

import asyncio
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import aiohttp
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from src.core.logger import logger
from src.api.config import APIConfig
from src.utils.cache import TTLCache


# =============================================================================
# Constants
# =============================================================================

TOKEN_TYPE_ACCESS = "access"

DISCORD_API_BASE = "https://discord.com/api/v10"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"

PROCESSED_CODE_TTL = timedelta(minutes=10)
PROCESSED_CODE_MAX = 10000


# =============================================================================
# Exceptions
# =============================================================================

class TokenError(Exception):
    """A bearer token could not be accepted."""

    def __init__(self, message: str, expired: bool = False):
        super().__init__(message)
        self.expired = expired


class OAuthError(Exception):
    """The Discord OAuth2 exchange failed."""


# =============================================================================
# Types
# =============================================================================

@dataclass
class TokenClaims:
    user_id: str
    expires_at: datetime
    guild_id: Optional[str] = None


@dataclass
class DiscordUser:
    id: str
    username: str
    global_name: Optional[str] = None
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "global_name": self.global_name,
            "avatar": self.avatar,
        }


# =============================================================================
# Auth Service
# =============================================================================

class AuthService:
    """
    Token and login handling for the dashboard.

    Features:
    - HS256 access tokens, optionally scoped to one guild
    - Constant-time pre-shared key comparison
    - Discord OAuth2 code exchange with a reused-code guard
    """

    def __init__(
        self,
        config: APIConfig,
        processed_codes: Optional[TTLCache[str, bool]] = None,
    ) -> None:
        self._config = config
        self._processed_codes = processed_codes or TTLCache(
            ttl=PROCESSED_CODE_TTL,
            max_size=PROCESSED_CODE_MAX,
        )
        self._session: Optional[aiohttp.ClientSession] = None

        if config.jwt_secret:
            self._secret = config.jwt_secret
        else:
            self._secret = secrets.token_urlsafe(32)
            logger.warning("JWT Secret Not Configured", [
                ("Effect", "Tokens will not survive a restart"),
                ("Fix", "Set MODBOARD_JWT_SECRET"),
            ])

    @property
    def processed_codes(self) -> TTLCache[str, bool]:
        return self._processed_codes

    # =========================================================================
    # Tokens
    # =========================================================================

    def issue_token(self, user_id: str, guild_id: Optional[str] = None) -> Tuple[str, datetime]:
        """
        Create an access token.

        Returns:
            Tuple of (token, expires_at)
        """
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(hours=self._config.jwt_expiry_hours)

        payload: Dict[str, Any] = {
            "sub": str(user_id),
            "iat": now,
            "exp": expires_at,
            "type": TOKEN_TYPE_ACCESS,
        }
        if guild_id:
            payload["guild_id"] = str(guild_id)

        token = jwt.encode(payload, self._secret, algorithm=self._config.jwt_algorithm)
        return token, expires_at

    def decode_token(self, token: str) -> TokenClaims:
        """
        Verify an access token.

        Raises:
            TokenError: expired=True for an expired token, otherwise the
                token is malformed, wrongly signed or of the wrong type.
        """
        if not token:
            raise TokenError("Empty token")

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._config.jwt_algorithm])
        except ExpiredSignatureError:
            raise TokenError("Token expired", expired=True)
        except InvalidTokenError as e:
            raise TokenError(str(e))

        if payload.get("type") != TOKEN_TYPE_ACCESS:
            raise TokenError("Wrong token type")

        sub = payload.get("sub")
        if not sub:
            raise TokenError("Missing subject")

        guild_id = payload.get("guild_id")
        return TokenClaims(
            user_id=str(sub),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            guild_id=str(guild_id) if guild_id else None,
        )

    def check_api_key(self, provided: Optional[str]) -> bool:
        """True if the pre-shared key is configured and matches."""
        if not self._config.api_key or not provided:
            return False
        return secrets.compare_digest(provided.encode(), self._config.api_key.encode())

    # =========================================================================
    # OAuth2
    # =========================================================================

    def claim_code(self, code: str) -> bool:
        """
        Mark an authorization code as used.

        Returns:
            False if the code was already used within the last 10 minutes.
        """
        return self._processed_codes.add_if_absent(code, True)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.oauth_timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def exchange_code(self, code: str) -> DiscordUser:
        """
        Trade an OAuth2 code for the Discord user it belongs to.

        Raises:
            OAuthError: On any non-200 response or transport failure.
        """
        form = {
            "client_id": self._config.discord_client_id,
            "client_secret": self._config.discord_client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._config.discord_redirect_uri,
        }

        session = await self._get_session()
        try:
            async with session.post(DISCORD_TOKEN_URL, data=form) as resp:
                if resp.status != 200:
                    logger.warning("Discord OAuth Token Exchange Failed", [
                        ("Status", str(resp.status)),
                    ])
                    raise OAuthError(f"Token endpoint returned {resp.status}")
                token_data = await resp.json()

            access_token = token_data.get("access_token")
            if not access_token:
                raise OAuthError("No access token in response")

            headers = {"Authorization": f"Bearer {access_token}"}
            async with session.get(f"{DISCORD_API_BASE}/users/@me", headers=headers) as resp:
                if resp.status != 200:
                    logger.warning("Discord User Lookup Failed", [
                        ("Status", str(resp.status)),
                    ])
                    raise OAuthError(f"User endpoint returned {resp.status}")
                data = await resp.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Discord OAuth Request Failed", [
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            raise OAuthError(str(e)) from e

        return DiscordUser(
            id=str(data["id"]),
            username=data.get("username", "Unknown"),
            global_name=data.get("global_name"),
            avatar=data.get("avatar"),
        )


__all__ = [
    "AuthService",
    "TokenClaims",
    "TokenError",
    "OAuthError",
    "DiscordUser",
    "TOKEN_TYPE_ACCESS",
]
