"""
ModBoard - Configuration Module
===============================

Environment-driven configuration for the dashboard core.

DESIGN:
    All settings come from environment variables (optionally loaded from a
    .env file by main.py). Values are parsed once into an immutable Config
    object that the rest of the code reads through get_config().

    The activity dedup window and the purge age are tunable here along with
    the username cache and backfill sizing.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_DB_PATH = Path("data") / "modboard.db"
DEFAULT_DISPLAY_TZ = "Asia/Jerusalem"
DEFAULT_DEDUP_WINDOW_SECONDS = 30
DEFAULT_RETENTION_DAYS = 30
DEFAULT_LOOKUP_TIMEOUT = 3.0


# =============================================================================
# Config Dataclass
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Core dashboard configuration.

    Attributes:
        discord_token: Bot token for the gateway client. Only main.py needs it.
        db_path: SQLite database file.
        display_timezone: IANA zone used when rendering log timestamps.
        dedup_window_seconds: Window for suppressing identical activity entries.
        retention_days: Default age for purging activity entries.
        username_lookup_timeout: Seconds allowed per Discord user lookup.
        username_cache_size: Maximum cached usernames (LRU eviction).
        username_cache_ttl: Seconds a cached username lives, 0 for no expiry.
        backfill_queue_size: Maximum pending username backfill jobs.
        backfill_workers: Number of backfill worker tasks.
        error_webhook_url: Discord webhook for error alerts.
    """

    discord_token: Optional[str] = None
    db_path: Path = DEFAULT_DB_PATH
    display_timezone: str = DEFAULT_DISPLAY_TZ
    dedup_window_seconds: int = DEFAULT_DEDUP_WINDOW_SECONDS
    retention_days: int = DEFAULT_RETENTION_DAYS
    username_lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT
    username_cache_size: int = 1000
    username_cache_ttl: int = 0
    backfill_queue_size: int = 500
    backfill_workers: int = 2
    error_webhook_url: Optional[str] = None

    @property
    def display_tz(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)


class ConfigValidationError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


# =============================================================================
# Parsing Helpers
# =============================================================================

def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse an optional integer, clamping it to [min_val, max_val].

    Invalid values fall back to the default with a warning.
    """
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        from src.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default

    if min_val is not None and parsed < min_val:
        from src.core.logger import logger
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        from src.core.logger import logger
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_float_with_default(value: Optional[str], default: float, name: str) -> float:
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        from src.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    return parsed if parsed > 0 else default


def _validate_timezone(value: Optional[str], name: str) -> str:
    """Return a loadable IANA zone name, raising on an unknown zone."""
    if not value:
        return DEFAULT_DISPLAY_TZ
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigValidationError(f"Unknown timezone for {name}: {value}")
    return value


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from src.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Raises:
        ConfigValidationError: If a value cannot be used at all.
    """
    return Config(
        discord_token=os.getenv("DISCORD_TOKEN") or None,
        db_path=Path(os.getenv("MODBOARD_DB_PATH", str(DEFAULT_DB_PATH))),
        display_timezone=_validate_timezone(
            os.getenv("MODBOARD_DISPLAY_TZ"), "MODBOARD_DISPLAY_TZ"
        ),
        dedup_window_seconds=_parse_int_with_default(
            os.getenv("MODBOARD_DEDUP_WINDOW"),
            DEFAULT_DEDUP_WINDOW_SECONDS,
            "MODBOARD_DEDUP_WINDOW",
            min_val=0,
            max_val=3600,
        ),
        retention_days=_parse_int_with_default(
            os.getenv("MODBOARD_RETENTION_DAYS"),
            DEFAULT_RETENTION_DAYS,
            "MODBOARD_RETENTION_DAYS",
            min_val=1,
        ),
        username_lookup_timeout=_parse_float_with_default(
            os.getenv("MODBOARD_LOOKUP_TIMEOUT"),
            DEFAULT_LOOKUP_TIMEOUT,
            "MODBOARD_LOOKUP_TIMEOUT",
        ),
        username_cache_size=_parse_int_with_default(
            os.getenv("MODBOARD_USERNAME_CACHE_SIZE"), 1000,
            "MODBOARD_USERNAME_CACHE_SIZE", min_val=1,
        ),
        username_cache_ttl=_parse_int_with_default(
            os.getenv("MODBOARD_USERNAME_CACHE_TTL"), 0,
            "MODBOARD_USERNAME_CACHE_TTL", min_val=0,
        ),
        backfill_queue_size=_parse_int_with_default(
            os.getenv("MODBOARD_BACKFILL_QUEUE_SIZE"), 500,
            "MODBOARD_BACKFILL_QUEUE_SIZE", min_val=1,
        ),
        backfill_workers=_parse_int_with_default(
            os.getenv("MODBOARD_BACKFILL_WORKERS"), 2,
            "MODBOARD_BACKFILL_WORKERS", min_val=1, max_val=16,
        ),
        error_webhook_url=_validate_url(
            os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"
        ),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None


def validate_and_log_config() -> Config:
    """
    Load the configuration and log a startup summary.

    Raises:
        ConfigValidationError: If configuration is invalid.
    """
    from src.core.logger import logger

    config = get_config()

    if config.error_webhook_url:
        logger.set_webhook(config.error_webhook_url)

    logger.tree("Configuration Validated", [
        ("Database", str(config.db_path)),
        ("Display TZ", config.display_timezone),
        ("Dedup Window", f"{config.dedup_window_seconds}s"),
        ("Retention", f"{config.retention_days} days"),
        ("Lookup Timeout", f"{config.username_lookup_timeout}s"),
        ("Webhook Alerts", "Enabled" if config.error_webhook_url else "Disabled"),
    ], emoji="⚙️")

    return config


__all__ = [
    "Config",
    "ConfigValidationError",
    "get_config",
    "load_config",
    "reset_config",
    "validate_and_log_config",
]
