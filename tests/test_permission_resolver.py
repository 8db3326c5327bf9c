"""
ModBoard - Permission Resolver Tests
====================================

Tests for admin detection, role labels, update presets and cross-guild
resolution.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

from src.core.permissions import Permission
from src.api.services.permissions import (
    PermissionResolver,
    ROLE_PRESETS,
    has_permission,
    is_admin,
    permissions_for_update,
    role_label,
)

GUILD_ONE = "111111111111111111"
GUILD_TWO = "222222222222222222"


class TestHelpers:
    """Tests for the pure permission helpers."""

    def test_is_admin(self):
        assert is_admin({Permission.ADMIN})
        assert is_admin({Permission.SYSTEM_ADMIN, Permission.VIEW_LOGS})
        assert not is_admin({Permission.MANAGE_USERS})
        assert not is_admin(set())

    def test_admin_implies_every_permission(self):
        assert has_permission({Permission.ADMIN}, Permission.VIEW_LOGS)
        assert has_permission({Permission.VIEW_LOGS}, Permission.VIEW_LOGS)
        assert not has_permission({Permission.VIEW_TICKETS}, Permission.VIEW_LOGS)

    def test_role_label(self):
        assert role_label({Permission.SYSTEM_ADMIN}) == "admin"
        assert role_label({Permission.MANAGE_TICKETS, Permission.VIEW_LOGS}) == "moderator"
        assert role_label({Permission.VIEW_LOGS}) == "user"

    def test_role_label_is_display_only(self):
        """Plain admin without system_admin is labelled user but is still admin."""
        tokens = {Permission.ADMIN}
        assert role_label(tokens) == "user"
        assert is_admin(tokens)

    def test_role_preset_replaces_list(self):
        result = permissions_for_update({Permission.VIEW_TICKETS}, "moderator", dashboard_access=False)
        assert result == ROLE_PRESETS["moderator"]
        assert Permission.VIEW_TICKETS not in result

    def test_custom_list_with_dashboard_access(self):
        result = permissions_for_update({Permission.VIEW_TICKETS}, None, dashboard_access=True)
        assert result == {Permission.VIEW_TICKETS, Permission.DASHBOARD_ACCESS}

    def test_unknown_role_uses_custom_list(self):
        assert permissions_for_update({Permission.VIEW_LOGS}, "custom") == {Permission.VIEW_LOGS}

    def test_admin_preset_contents(self):
        preset = ROLE_PRESETS["admin"]
        assert Permission.SYSTEM_ADMIN in preset
        assert Permission.MANAGE_ROLES in preset
        assert role_label(preset) == "admin"


class TestResolver:
    """Tests for resolving grants against the guilds the bot sees."""

    def test_resolves_only_guilds_with_grants(self, test_db, mock_bot):
        test_db.save_dashboard_permissions("7", GUILD_ONE, {Permission.VIEW_LOGS})
        resolver = PermissionResolver(test_db, lambda: mock_bot)

        assert resolver.resolve_across_all_guilds("7") == {GUILD_ONE: {Permission.VIEW_LOGS}}

    def test_skips_revoked_grants(self, test_db, mock_bot):
        test_db.save_dashboard_permissions("7", GUILD_ONE, {Permission.VIEW_LOGS})
        test_db.save_dashboard_permissions("7", GUILD_TWO, set())
        resolver = PermissionResolver(test_db, lambda: mock_bot)

        assert set(resolver.resolve_across_all_guilds("7")) == {GUILD_ONE}

    def test_ignores_guilds_the_bot_cannot_see(self, test_db, mock_bot):
        test_db.save_dashboard_permissions("7", "333", {Permission.ADMIN})
        resolver = PermissionResolver(test_db, lambda: mock_bot)

        assert resolver.resolve_across_all_guilds("7") == {}
        assert resolver.resolve_for_guild("7", "333") == {Permission.ADMIN}

    def test_no_bot_means_no_guilds(self, test_db):
        test_db.save_dashboard_permissions("7", GUILD_ONE, {Permission.VIEW_LOGS})
        resolver = PermissionResolver(test_db, lambda: None)
        assert resolver.resolve_across_all_guilds("7") == {}

    def test_bot_not_ready_means_no_guilds(self, test_db):
        test_db.save_dashboard_permissions("7", GUILD_ONE, {Permission.VIEW_LOGS})
        bot = MagicMock()
        bot.is_ready.return_value = False
        resolver = PermissionResolver(test_db, lambda: bot)
        assert resolver.resolve_across_all_guilds("7") == {}

    def test_guild_listing_failure_is_contained(self, test_db):
        bot = MagicMock()
        bot.is_ready.side_effect = RuntimeError("gateway gone")
        resolver = PermissionResolver(test_db, lambda: bot)
        assert resolver.resolve_across_all_guilds("7") == {}

    def test_accessible_servers(self, test_db, mock_bot):
        resolver = PermissionResolver(test_db, lambda: mock_bot)
        servers = resolver.accessible_servers({
            GUILD_TWO: {Permission.VIEW_LOGS},
            GUILD_ONE: {Permission.ADMIN},
        })

        assert servers == [
            {"id": GUILD_ONE, "name": "Guild One", "permissions": ["admin"], "is_admin": True},
            {"id": GUILD_TWO, "name": "Guild Two", "permissions": ["view_logs"], "is_admin": False},
        ]

    def test_accessible_server_without_name_uses_id(self, test_db):
        bot = MagicMock()
        bot.is_ready.return_value = True
        bot.guilds = [SimpleNamespace(id=1)]
        resolver = PermissionResolver(test_db, lambda: bot)

        assert resolver.accessible_servers({"5": {Permission.VIEW_LOGS}})[0]["name"] == "5"
