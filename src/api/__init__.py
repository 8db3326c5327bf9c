"""
ModBoard - API Package
======================

FastAPI-based REST API for the dashboard: permission summary, activity log
viewer and permission management.

Usage with bot:
    from src.api import APIService

    # In your bot's setup
    api_service = APIService(bot)
    await api_service.start()

    # On shutdown
    await api_service.stop()

Standalone (for development):
    uvicorn src.api.app:create_app --factory --reload
"""

import asyncio
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI

from src.core.logger import logger
from src.utils.async_utils import create_safe_task
from src.api.config import APIConfig, get_api_config
from src.api.app import create_app
from src.api.context import AppContext


# =============================================================================
# API Service
# =============================================================================

class APIService:
    """
    Manages the FastAPI server lifecycle within the Discord bot.

    The server runs in a background task so the bot and API share one
    event loop.
    """

    def __init__(self, bot: Any, config: Optional[APIConfig] = None) -> None:
        self._config = config or get_api_config()
        self._app = create_app(bot, api_config=self._config)
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def app(self) -> FastAPI:
        return self._app

    @property
    def context(self) -> AppContext:
        return self._app.state.context

    @property
    def is_running(self) -> bool:
        """Check if the API server is running."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the API server in a background task."""
        if self.is_running:
            logger.warning("API Already Running", [])
            return

        config = uvicorn.Config(
            app=self._app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",  # Reduce uvicorn logging
            access_log=False,
        )

        self._server = uvicorn.Server(config)
        self._task = create_safe_task(self._server.serve(), "API Server")

        logger.tree("API Service Started", [
            ("Host", self._config.host),
            ("Port", str(self._config.port)),
            ("Debug", str(self._config.debug)),
        ], emoji="🌐")

    async def stop(self) -> None:
        """Stop the API server gracefully."""
        if not self.is_running:
            return

        logger.tree("API Service Stopping", [], emoji="🛑")

        if self._server:
            self._server.should_exit = True

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

        self._server = None
        self._task = None

        logger.tree("API Service Stopped", [], emoji="✅")


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "APIService",
    "APIConfig",
    "get_api_config",
    "create_app",
]
