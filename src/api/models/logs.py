"""
ModBoard - Activity Log API Models
==================================

Request and response models for the dashboard log endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field

from src.core.database import DASHBOARD_GUILD_ID


class LogCreateRequest(BaseModel):
    """An activity entry submitted by the dashboard frontend."""

    user_id: str = Field(min_length=1, description="Discord user ID of the actor")
    action_type: str = Field(min_length=1, max_length=100)
    page: str = Field(min_length=1, max_length=100)
    guild_id: str = Field(DASHBOARD_GUILD_ID, description="Guild the action touched")
    username: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    details: Optional[str] = Field(None, max_length=4000)
    success: bool = True
    error_message: Optional[str] = None


class LogCreateResponse(BaseModel):
    logged: bool


class CleanupResponse(BaseModel):
    deleted: int
    days: int


__all__ = ["LogCreateRequest", "LogCreateResponse", "CleanupResponse"]
