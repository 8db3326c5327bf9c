"""
ModBoard - Test Fixtures
========================

Shared fixtures for all tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up test environment before importing modules
os.environ.setdefault("MODBOARD_LOGS_DIR", tempfile.mkdtemp(prefix="modboard-logs-"))


GUILD_ONE = "111111111111111111"
GUILD_TWO = "222222222222222222"
ADMIN_ID = "900000000000000001"
MOD_ID = "900000000000000002"
OUTSIDER_ID = "900000000000000003"

JWT_SECRET = "test-jwt-secret"
API_KEY = "test-api-key"


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path."""
    return tmp_path / "test_modboard.db"


@pytest.fixture
def test_config():
    """Configuration with defaults, isolated from the environment."""
    from src.core.config import Config
    return Config(db_path=Path(tempfile.gettempdir()) / "unused.db")


@pytest.fixture
def test_db(temp_db_path, monkeypatch, test_config):
    """Create a fresh test database instance."""
    from src.core import config as config_module
    from src.core.database import manager as db_module

    # Reset singletons
    db_module.DatabaseManager._instance = None
    monkeypatch.setattr(config_module, "_config", test_config)

    # Patch the DB path
    monkeypatch.setattr(db_module, "DB_PATH", temp_db_path)

    db = db_module.DatabaseManager()

    yield db

    # Cleanup
    db.close()
    db_module.DatabaseManager._instance = None


@pytest.fixture
def frozen_clock(test_db, monkeypatch):
    """
    Controllable store clock.

    Usage:
        frozen_clock.advance(seconds=31)
    """
    from datetime import datetime, timedelta, timezone

    class Clock:
        def __init__(self):
            self.now = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

        def advance(self, **kwargs):
            self.now += timedelta(**kwargs)

        def __call__(self):
            return self.now

    clock = Clock()
    monkeypatch.setattr(test_db, "_now", clock)
    return clock


# =============================================================================
# Discord Mocks
# =============================================================================

def make_guild(guild_id: str, name: str):
    return SimpleNamespace(id=int(guild_id), name=name)


def make_user(name: str):
    return SimpleNamespace(name=name)


@pytest.fixture
def mock_bot():
    """A ready gateway client that sees two guilds."""
    bot = MagicMock()
    bot.is_ready.return_value = True
    bot.guilds = [make_guild(GUILD_ONE, "Guild One"), make_guild(GUILD_TWO, "Guild Two")]
    bot.latency = 0.042
    bot.get_user.return_value = None
    bot.fetch_user = AsyncMock(side_effect=lambda uid: make_user(f"user{str(uid)[-4:]}"))
    return bot


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def api_config():
    from src.api.config import APIConfig
    return APIConfig(jwt_secret=JWT_SECRET, api_key=API_KEY)


@pytest.fixture
def app(test_db, mock_bot, api_config, test_config):
    """A FastAPI app wired to the temp database and the mock bot."""
    from src.api.app import create_app
    return create_app(mock_bot, api_config=api_config, config=test_config, db=test_db)


@pytest.fixture
def client(app):
    """TestClient running the app lifespan."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def ctx(app):
    return app.state.context


@pytest.fixture
def bearer(ctx):
    """Build Authorization headers for a user, optionally guild-scoped."""
    def _bearer(user_id: str, guild_id=None):
        token, _ = ctx.auth.issue_token(user_id, guild_id)
        return {"Authorization": f"Bearer {token}"}
    return _bearer


@pytest.fixture
def seeded(test_db):
    """
    Grants used across API tests:
    - ADMIN_ID: admin in GUILD_ONE
    - MOD_ID: view_logs in GUILD_ONE and GUILD_TWO
    """
    from src.core.permissions import Permission

    test_db.save_dashboard_permissions(ADMIN_ID, GUILD_ONE, {Permission.ADMIN})
    test_db.save_dashboard_permissions(MOD_ID, GUILD_ONE, {Permission.VIEW_LOGS, Permission.DASHBOARD_ACCESS})
    test_db.save_dashboard_permissions(MOD_ID, GUILD_TWO, {Permission.VIEW_LOGS})
    return test_db
