"""
ModBoard - API Models
=====================

Pydantic models for request/response validation.
"""

from .base import *
from .auth import *
from .logs import *
from .admin import *


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # base.py
    "APIResponse",
    "PaginatedResponse",
    "PaginationMeta",
    "HealthResponse",
    # auth.py
    "OAuthCallbackRequest",
    "LoginResponse",
    "MeResponse",
    # logs.py
    "LogCreateRequest",
    "LogCreateResponse",
    "CleanupResponse",
    # admin.py
    "PermissionUpdateRequest",
    "PermissionGrantResponse",
]
