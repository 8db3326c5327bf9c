"""
ModBoard - Main Bot Class
=========================

Discord gateway client that hosts the dashboard API.

The API reads the client for the guild list and for username lookups, so
both run on the same event loop.
"""

from datetime import datetime, timezone
from typing import Optional

import discord
from discord.ext import commands

from src.core.logger import logger
from src.core.config import Config, get_config
from src.core.database import get_db


# =============================================================================
# ModBoardBot Class
# =============================================================================

class ModBoardBot(commands.Bot):
    """
    Gateway client for the moderation dashboard.

    SERVICE INITIALIZATION ORDER:
    1. setup_hook (before on_ready):
       - API service (FastAPI + uvicorn) started in the background
    2. on_ready:
       - Guild summary logged; the API starts seeing guilds from here on
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or get_config()

        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.db = get_db()
        self.start_time: datetime = datetime.now(timezone.utc)
        self.api_service = None
        self._ready_initialized = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def setup_hook(self) -> None:
        """Start the API before the gateway connects."""
        from src.api import APIService

        self.api_service = APIService(self)
        await self.api_service.start()

    async def on_ready(self) -> None:
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.tree("Guild Joined", [
            ("Guild", guild.name),
            ("ID", str(guild.id)),
        ], emoji="➕")

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        # Stored grants are kept; the guild just stops being visible
        logger.tree("Guild Removed", [
            ("Guild", guild.name),
            ("ID", str(guild.id)),
        ], emoji="➖")

    async def close(self) -> None:
        """Stop the API, then disconnect and close the store."""
        if self.api_service:
            await self.api_service.stop()

        await super().close()
        self.db.close()

        logger.tree("BOT STOPPED", [
            ("Uptime", str(datetime.now(timezone.utc) - self.start_time).split(".")[0]),
        ], emoji="🛑")


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["ModBoardBot"]
