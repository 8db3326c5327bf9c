"""
ModBoard - Rate Limiting Middleware
===================================

Token bucket rate limiting for the login endpoints.

Only paths registered with set_limit are limited. Everything else passes
straight through.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.logger import logger
from src.api.errors import ErrorCode, error_response


# =============================================================================
# Token Bucket
# =============================================================================

@dataclass
class TokenBucket:
    """Token bucket for rate limiting."""

    capacity: int
    tokens: float = field(default=0)
    last_update: float = field(default_factory=time.monotonic)
    refill_rate: float = 1.0  # tokens per second

    def __post_init__(self):
        self.tokens = float(self.capacity)

    def consume(self, now: float, tokens: int = 1) -> bool:
        """
        Try to consume tokens from the bucket.

        Returns:
            True if tokens were consumed, False if not enough tokens
        """
        elapsed = now - self.last_update
        self.last_update = now

        # Refill tokens
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    @property
    def retry_after(self) -> float:
        """Seconds until a token is available."""
        if self.tokens >= 1:
            return 0
        return (1 - self.tokens) / self.refill_rate


# =============================================================================
# Rate Limiter
# =============================================================================

class RateLimiter:
    """
    Per-IP, per-path token buckets for registered path prefixes.

    Stale buckets are dropped every few minutes.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._limits: Dict[str, Tuple[int, int]] = {}  # prefix -> (limit, window)
        self._last_cleanup = clock()
        self._cleanup_interval = 300  # 5 minutes

    def set_limit(self, prefix: str, limit: int, window: int = 60) -> None:
        """Limit every path starting with prefix."""
        self._limits[prefix] = (limit, window)

    def limit_for_path(self, path: str) -> Optional[Tuple[int, int]]:
        """Return (limit, window) for a path, or None if it is not limited."""
        if path in self._limits:
            return self._limits[path]
        for prefix, limits in self._limits.items():
            if path.startswith(prefix):
                return limits
        return None

    def _cleanup_stale_buckets(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        stale_threshold = now - 600  # 10 minutes

        stale_keys = [
            key for key, bucket in self._buckets.items()
            if bucket.last_update < stale_threshold
        ]
        for key in stale_keys:
            del self._buckets[key]

        if stale_keys:
            logger.debug("Rate Limit Cleanup", [
                ("Removed", str(len(stale_keys))),
                ("Remaining", str(len(self._buckets))),
            ])

    def check(self, client_ip: str, path: str) -> Tuple[bool, Optional[float], Optional[int], Optional[int]]:
        """
        Check if a request should be allowed.

        Returns:
            Tuple of (allowed, retry_after, remaining, limit). remaining and
            limit are None for paths that are not limited.
        """
        limits = self.limit_for_path(path)
        if limits is None:
            return True, None, None, None

        now = self._clock()
        self._cleanup_stale_buckets(now)

        limit, window = limits
        key = f"ip:{client_ip}:{path}"
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(capacity=limit, refill_rate=limit / window, last_update=now)
            self._buckets[key] = bucket

        allowed = bucket.consume(now)
        return (
            allowed,
            bucket.retry_after if not allowed else None,
            int(bucket.tokens),
            limit,
        )


# =============================================================================
# Helpers
# =============================================================================

def get_client_ip(request: Request) -> str:
    """Extract client IP, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host
    return "unknown"


def normalize_path(path: str) -> str:
    """Group paths that differ only by an id segment."""
    normalized = []
    for part in path.rstrip("/").split("/"):
        if not part:
            continue
        if part.isdigit() or (len(part) > 20 and "-" in part):
            normalized.append("{id}")
        else:
            normalized.append(part)
    return "/" + "/".join(normalized)


# =============================================================================
# Middleware
# =============================================================================

class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting.

    Limited responses carry X-RateLimit-Limit and X-RateLimit-Remaining;
    rejections add Retry-After and the standard error envelope.
    """

    def __init__(self, app, rate_limiter: RateLimiter):
        super().__init__(app)
        self._limiter = rate_limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = get_client_ip(request)
        path = normalize_path(request.url.path)

        allowed, retry_after, remaining, limit = self._limiter.check(client_ip, path)

        if not allowed:
            logger.warning("Rate Limit Exceeded", [
                ("IP", client_ip),
                ("Path", path),
                ("Retry After", f"{retry_after:.1f}s"),
            ])
            return error_response(
                ErrorCode.RATE_LIMIT_EXCEEDED,
                headers={
                    "Retry-After": str(max(1, int(retry_after or 1))),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)

        if limit is not None:
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = str(remaining)

        return response


__all__ = ["RateLimitMiddleware", "RateLimiter", "TokenBucket", "get_client_ip", "normalize_path"]
