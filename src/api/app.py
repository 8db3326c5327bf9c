"""
ModBoard - FastAPI Application
==============================

FastAPI application factory and configuration.

Run standalone with:
    uvicorn src.api.app:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.config import Config
from src.core.database import DatabaseManager
from src.core.logger import logger
from src.api.config import API_PREFIX, APIConfig, get_api_config
from src.api.context import build_context
from src.api.errors import APIError, ErrorCode, error_response
from src.api.middleware.activity import ActivityLoggingMiddleware
from src.api.middleware.rate_limit import RateLimitMiddleware
from src.api.routers import admin_router, auth_router, dashboard_logs_router, health_router


API_VERSION = "1.0.0"


# =============================================================================
# OpenAPI Documentation
# =============================================================================

API_DESCRIPTION = """
## ModBoard Dashboard API

Backend for the moderation dashboard: per-guild dashboard permissions and
the audit trail of what dashboard users did.

### Authentication

Every endpoint except `/health` and the OAuth callback requires either:

```
Authorization: Bearer <access_token>
```

or, for trusted services, `x-api-key: <key>` together with `x-user-id: <discord id>`.

### Rate Limits

Auth endpoints allow 5 requests per minute per client. A limited response is
`429` with a `Retry-After` header.

### Error Responses

```json
{
    "success": false,
    "error": "Insufficient permissions for this action",
    "error_code": "AUTH_INSUFFICIENT_PERMISSIONS",
    "details": null
}
```
"""

OPENAPI_TAGS = [
    {
        "name": "Health",
        "description": "Health check endpoints",
    },
    {
        "name": "Authentication",
        "description": "Discord OAuth login and permission summary",
    },
    {
        "name": "Dashboard Logs",
        "description": "Activity log viewer and retention",
    },
    {
        "name": "Admin",
        "description": "Dashboard permission management",
    },
]


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the background username backfill."""
    ctx = app.state.context

    logger.tree("API Starting", [
        ("Version", API_VERSION),
        ("Prefix", API_PREFIX),
        ("Bot Attached", "Yes" if ctx.bot else "No"),
    ], emoji="🚀")

    await ctx.backfill.start()

    yield

    logger.tree("API Stopping", [
        ("Backfill Completed", str(ctx.backfill.completed)),
        ("Backfill Dropped", str(ctx.backfill.dropped)),
    ], emoji="🛑")

    await ctx.backfill.stop()
    await ctx.auth.close()


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    bot: Optional[Any] = None,
    api_config: Optional[APIConfig] = None,
    config: Optional[Config] = None,
    db: Optional[DatabaseManager] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        bot: Optional Discord client used for guild lists and usernames
        api_config: API settings, defaults to the environment
        config: Core settings, defaults to the environment
        db: Store, defaults to the shared DatabaseManager

    Returns:
        Configured FastAPI application
    """
    api_config = api_config or get_api_config()

    app = FastAPI(
        title="ModBoard API",
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url=f"{API_PREFIX}/docs" if api_config.debug else None,
        redoc_url=f"{API_PREFIX}/redoc" if api_config.debug else None,
        openapi_url=f"{API_PREFIX}/openapi.json" if api_config.debug else None,
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )

    app.state.context = build_context(api_config, bot=bot, config=config, db=db)

    # ==========================================================================
    # Middleware (order matters - last added = first executed)
    # ==========================================================================

    # Activity logging, innermost so it sees the handler's request state
    app.add_middleware(ActivityLoggingMiddleware)

    # Rate limiting
    app.add_middleware(RateLimitMiddleware, rate_limiter=app.state.context.rate_limiter)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(api_config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Wrap framework errors (unknown route, bad method) in the envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": str(exc.detail),
                "error_code": f"HTTP_{exc.status_code}",
                "details": None,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        logger.debug("Request Validation Failed", [
            ("Path", str(request.url.path)[:50]),
            ("Errors", str(len(errors))),
        ])
        return error_response(ErrorCode.VALIDATION_ERROR, details={"errors": errors})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions with consistent error format."""
        logger.error("Unhandled API Error", [
            ("Path", str(request.url.path)[:50]),
            ("Method", request.method),
            ("Error Type", type(exc).__name__),
            ("Error", str(exc)[:100]),
        ])

        return error_response(
            ErrorCode.SERVER_ERROR,
            details={"path": str(request.url.path), "error": str(exc)[:200]} if api_config.debug else None,
        )

    # ==========================================================================
    # Routers
    # ==========================================================================

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(dashboard_logs_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)

    # Root health check (for load balancers)
    app.include_router(health_router)

    return app


__all__ = ["create_app", "API_VERSION"]
