"""
ModBoard - Utils Package
========================

Stateless helpers usable anywhere in the codebase.

Available Utilities:
    TTLCache: Bounded LRU cache with optional expiry
    create_safe_task: Background task whose failures are logged
    gather_with_logging: Concurrent awaits with per-operation error logging
"""

from .async_utils import create_safe_task, gather_with_logging
from .cache import TTLCache


__all__ = [
    "TTLCache",
    "create_safe_task",
    "gather_with_logging",
]
