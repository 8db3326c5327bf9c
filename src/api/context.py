"""
ModBoard - Application Context
==============================

Holds the services one API instance shares across requests: the store,
the permission resolver, the auth service, the log enricher with its
username cache, the backfill queue and the rate limiter.

The context lives on app.state.context and is fetched per request by the
get_context dependency, so each app (and each test) gets its own caches.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from fastapi import Request

from src.core.config import Config, get_config
from src.core.database import DatabaseManager, get_db
from src.api.config import API_PREFIX, APIConfig
from src.api.middleware.rate_limit import RateLimiter
from src.api.services.auth import AuthService
from src.api.services.backfill import BackfillQueue
from src.api.services.enrichment import LogEnricher, UsernameResolver
from src.api.services.permissions import PermissionResolver
from src.utils.cache import TTLCache


@dataclass
class AppContext:
    """Services shared by every request of one API instance."""

    config: Config
    api_config: APIConfig
    db: DatabaseManager
    resolver: PermissionResolver
    auth: AuthService
    enricher: LogEnricher
    usernames: UsernameResolver
    backfill: BackfillQueue
    rate_limiter: RateLimiter
    bot: Optional[Any] = None


def build_context(
    api_config: APIConfig,
    bot: Optional[Any] = None,
    config: Optional[Config] = None,
    db: Optional[DatabaseManager] = None,
) -> AppContext:
    """Wire up the services for one API instance."""
    config = config or get_config()
    db = db or get_db()

    # Reads ctx late so a bot attached after startup is picked up
    def bot_provider() -> Optional[Any]:
        return ctx.bot

    username_cache: TTLCache[str, str] = TTLCache(
        ttl=timedelta(seconds=config.username_cache_ttl) if config.username_cache_ttl > 0 else None,
        max_size=config.username_cache_size,
    )
    usernames = UsernameResolver(bot_provider, username_cache, timeout=config.username_lookup_timeout)
    backfill = BackfillQueue(db, max_size=config.backfill_queue_size, workers=config.backfill_workers)

    rate_limiter = RateLimiter()
    rate_limiter.set_limit(
        f"{API_PREFIX}/auth/discord",
        api_config.auth_rate_limit_requests,
        api_config.auth_rate_limit_window,
    )

    ctx = AppContext(
        config=config,
        api_config=api_config,
        db=db,
        resolver=PermissionResolver(db, bot_provider),
        auth=AuthService(api_config),
        enricher=LogEnricher(usernames, config.display_tz, backfill),
        usernames=usernames,
        backfill=backfill,
        rate_limiter=rate_limiter,
        bot=bot,
    )
    return ctx


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the app's context."""
    return request.app.state.context


__all__ = ["AppContext", "build_context", "get_context"]
