"""
ModBoard - API Routers
======================

Route handlers for the API.
"""

from .health import router as health_router
from .auth import router as auth_router
from .dashboard_logs import router as dashboard_logs_router
from .admin import router as admin_router

__all__ = [
    "health_router",
    "auth_router",
    "dashboard_logs_router",
    "admin_router",
]
