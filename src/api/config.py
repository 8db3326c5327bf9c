"""
ModBoard - API Configuration
============================

Settings for the FastAPI service: server, CORS, auth and pagination.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple


API_PREFIX = "/api/modboard"


@dataclass(frozen=True)
class APIConfig:
    """API configuration settings."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8082
    debug: bool = False

    # CORS
    cors_origins: Tuple[str, ...] = ("*",)

    # Auth rate limiting (auth endpoints only)
    auth_rate_limit_requests: int = 5
    auth_rate_limit_window: int = 60  # seconds

    # JWT Auth
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24

    # Pre-shared key for trusted callers (paired with x-user-id)
    api_key: str = ""

    # Discord OAuth2
    discord_client_id: str = ""
    discord_client_secret: str = ""
    discord_redirect_uri: str = ""
    oauth_timeout: float = 10.0

    # Pagination
    default_page_size: int = 50
    max_page_size: int = 100


def _parse_origins(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ("*",)
    origins = tuple(part.strip() for part in value.split(",") if part.strip())
    return origins or ("*",)


def load_api_config() -> APIConfig:
    """Load API configuration from environment."""
    return APIConfig(
        host=os.getenv("MODBOARD_API_HOST", "0.0.0.0"),
        port=int(os.getenv("MODBOARD_API_PORT", "8082")),
        debug=os.getenv("MODBOARD_API_DEBUG", "false").lower() == "true",
        cors_origins=_parse_origins(os.getenv("MODBOARD_CORS_ORIGINS")),
        auth_rate_limit_requests=int(os.getenv("MODBOARD_AUTH_RATE_LIMIT", "5")),
        auth_rate_limit_window=int(os.getenv("MODBOARD_AUTH_RATE_WINDOW", "60")),
        jwt_secret=os.getenv("MODBOARD_JWT_SECRET", ""),
        jwt_expiry_hours=int(os.getenv("MODBOARD_JWT_EXPIRY_HOURS", "24")),
        api_key=os.getenv("MODBOARD_API_KEY", ""),
        discord_client_id=os.getenv("DISCORD_CLIENT_ID", ""),
        discord_client_secret=os.getenv("DISCORD_CLIENT_SECRET", ""),
        discord_redirect_uri=os.getenv("DISCORD_REDIRECT_URI", ""),
    )


# Singleton instance
_config: Optional[APIConfig] = None


def get_api_config() -> APIConfig:
    """Get the API configuration singleton."""
    global _config
    if _config is None:
        _config = load_api_config()
    return _config


def set_api_config(config: Optional[APIConfig]) -> None:
    """Replace the API configuration singleton (None reloads on next use)."""
    global _config
    _config = config


__all__ = ["API_PREFIX", "APIConfig", "get_api_config", "load_api_config", "set_api_config"]
