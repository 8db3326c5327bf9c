#!/usr/bin/env python3
"""
ModBoard - Entry Point
======================

Starts the Discord gateway client, which hosts the dashboard API.
"""

import asyncio
import sys

from dotenv import load_dotenv

from src.core.logger import logger


async def main() -> None:
    """
    Main entry point.

    Handles the bot lifecycle:
    1. Loads environment configuration
    2. Validates configuration and the Discord bot token
    3. Connects to Discord (the API starts in setup_hook)

    Raises:
        SystemExit: If configuration is invalid or the token is missing
    """
    load_dotenv()

    from src.core.config import ConfigValidationError, validate_and_log_config

    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.critical("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    if not config.discord_token:
        logger.error("No DISCORD_TOKEN Found", [
            ("Fix", "Add your bot token to the .env file"),
        ])
        sys.exit(1)

    from src.bot import ModBoardBot

    bot = ModBoardBot(config)
    async with bot:
        await bot.start(config.discord_token)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
