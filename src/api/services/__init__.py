"""
ModBoard - API Services
=======================

Service layer for the API.
"""

# Authentication
from .auth import AuthService, OAuthError, TokenError

# Permissions
from .permissions import PermissionResolver

# Log display
from .backfill import BackfillQueue
from .enrichment import LogEnricher, UsernameResolver

__all__ = [
    "AuthService",
    "OAuthError",
    "TokenError",
    "PermissionResolver",
    "BackfillQueue",
    "LogEnricher",
    "UsernameResolver",
]
