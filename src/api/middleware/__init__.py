"""
ModBoard - API Middleware
=========================

Middleware components for the FastAPI application.
"""

from .activity import ActivityLoggingMiddleware
from .rate_limit import RateLimitMiddleware, RateLimiter

__all__ = [
    "ActivityLoggingMiddleware",
    "RateLimitMiddleware",
    "RateLimiter",
]
