"""
ModBoard - Health Router
========================

Liveness endpoint, served both at the root and under the API prefix.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends

from src.core.logger import logger
from src.api.context import AppContext, get_context
from src.api.dependencies import get_bot
from src.api.models.base import APIResponse, HealthResponse


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=APIResponse[HealthResponse])
async def health_check(
    bot: Optional[Any] = Depends(get_bot),
    ctx: AppContext = Depends(get_context),
) -> APIResponse[HealthResponse]:
    """
    Basic health check endpoint.

    Reports "degraded" when the database does not answer. A disconnected
    bot is reported but does not degrade the status.
    """
    connected = bool(bot and bot.is_ready())
    guilds = len(bot.guilds) if connected else 0
    latency = getattr(bot, "latency", None) if connected else None

    status = "healthy"
    try:
        ctx.db.fetchone("SELECT 1")
    except Exception as e:
        status = "degraded"
        logger.warning("Health Check Database Failure", [
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
        ])

    return APIResponse(
        data=HealthResponse(
            status=status,
            connected=connected,
            guilds=guilds,
            latency_ms=int(latency * 1000) if isinstance(latency, (int, float)) else None,
        ),
    )


__all__ = ["router"]
