"""
ModBoard - Admin API Models
===========================

Permission management request/response models.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PermissionUpdateRequest(BaseModel):
    """
    Replace one user's permissions in one guild.

    A known role ("admin", "moderator") replaces the list with its preset.
    """

    model_config = ConfigDict(populate_by_name=True)

    guild_id: str = Field(alias="guildId", min_length=1)
    permissions: Optional[List[str]] = None
    role: Optional[str] = None
    dashboard_access: bool = Field(False, alias="dashboardAccess")


class PermissionGrantResponse(BaseModel):
    user_id: str
    guild_id: str
    permissions: List[str]
    role: str


__all__ = ["PermissionUpdateRequest", "PermissionGrantResponse"]
