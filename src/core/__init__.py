"""
ModBoard - Core Package
=======================

Configuration, logging, permission tokens and the database layer.

DESIGN:
    Core modules expose process-wide singletons:
    - get_config() returns the same Config instance
    - get_db() returns the same DatabaseManager instance
    - logger is a global TreeLogger instance
"""

from .config import Config, ConfigValidationError, get_config
from .logger import logger, TreeLogger
from .permissions import Permission


__all__ = [
    "Config",
    "ConfigValidationError",
    "get_config",
    "logger",
    "TreeLogger",
    "Permission",
]
