"""
ModBoard - Source Package
=========================

Dashboard permission and activity-audit backend for a Discord moderation bot.

Package Structure:
- bot.py: Discord gateway client the dashboard reads guilds and users from
- core/: Configuration, logging, permission tokens and SQLite storage
- api/: FastAPI application, authentication, routers and services
- utils/: Shared caching and async helpers

Version: v1.0.0
"""
