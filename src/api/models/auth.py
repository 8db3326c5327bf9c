"""
ModBoard - Auth API Models
==========================

Authentication request/response models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Request Models
# =============================================================================

class OAuthCallbackRequest(BaseModel):
    """Discord OAuth2 redirect payload forwarded by the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = Field(None, description="OAuth2 authorization code")
    guild_id: Optional[str] = Field(None, alias="guildId", description="Scope the token to one guild")


# =============================================================================
# Response Models
# =============================================================================

class LoginResponse(BaseModel):
    """Issued token plus the caller's access summary."""

    token: str
    expires_at: datetime
    user: Dict[str, Any]
    is_admin: bool
    accessible_servers: List[Dict[str, Any]]


class MeResponse(BaseModel):
    """The authenticated caller's permissions."""

    user_id: str
    username: str
    is_admin: bool
    role: str
    permissions: List[str]
    server_permissions: Dict[str, List[str]]
    accessible_servers: List[Dict[str, Any]]


__all__ = [
    "OAuthCallbackRequest",
    "LoginResponse",
    "MeResponse",
]
