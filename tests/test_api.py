"""
ModBoard - HTTP API Tests
=========================

End-to-end tests through the FastAPI TestClient: authentication, the
permission summary, the log viewer and permission management.
"""

from unittest.mock import AsyncMock

import jwt
import pytest

from src.core.database import ActivityLogEntry, DASHBOARD_GUILD_ID, LogFilter, PersistenceError
from src.core.permissions import Permission
from src.api.config import API_PREFIX, APIConfig
from src.api.services.auth import AuthService, DiscordUser, OAuthError, TokenError


GUILD_ONE = "111111111111111111"
GUILD_TWO = "222222222222222222"
ADMIN_ID = "900000000000000001"
MOD_ID = "900000000000000002"
OUTSIDER_ID = "900000000000000003"
JWT_SECRET = "test-jwt-secret"
API_KEY = "test-api-key"

ME = f"{API_PREFIX}/auth/me"
CALLBACK = f"{API_PREFIX}/auth/discord/callback"
LOGS = f"{API_PREFIX}/dashboard-logs"
ADMIN_USERS = f"{API_PREFIX}/admin/users"


def _log(db, user_id, guild_id, action="export_data", page="logs"):
    return db.log_activity(ActivityLogEntry(
        user_id=user_id,
        action_type=action,
        page=page,
        guild_id=guild_id,
    ))


def _login_stub(monkeypatch, ctx, user_id, username="someone"):
    stub = AsyncMock(return_value=DiscordUser(id=user_id, username=username))
    monkeypatch.setattr(ctx.auth, "exchange_code", stub)
    return stub


# =============================================================================
# Tokens
# =============================================================================

class TestTokens:
    """Tests for AuthService token handling."""

    def test_issue_and_decode(self):
        service = AuthService(APIConfig(jwt_secret=JWT_SECRET))
        token, expires_at = service.issue_token(MOD_ID, GUILD_ONE)

        claims = service.decode_token(token)
        assert claims.user_id == MOD_ID
        assert claims.guild_id == GUILD_ONE
        assert int(claims.expires_at.timestamp()) == int(expires_at.timestamp())

    def test_unscoped_token(self):
        service = AuthService(APIConfig(jwt_secret=JWT_SECRET))
        token, _ = service.issue_token(MOD_ID)
        assert service.decode_token(token).guild_id is None

    def test_expired_token(self):
        service = AuthService(APIConfig(jwt_secret=JWT_SECRET, jwt_expiry_hours=-1))
        token, _ = service.issue_token(MOD_ID)

        with pytest.raises(TokenError) as exc_info:
            service.decode_token(token)
        assert exc_info.value.expired is True

    def test_wrong_secret(self):
        token, _ = AuthService(APIConfig(jwt_secret="other")).issue_token(MOD_ID)

        with pytest.raises(TokenError) as exc_info:
            AuthService(APIConfig(jwt_secret=JWT_SECRET)).decode_token(token)
        assert exc_info.value.expired is False

    def test_wrong_token_type(self):
        token = jwt.encode({"sub": MOD_ID, "type": "refresh"}, JWT_SECRET, algorithm="HS256")
        with pytest.raises(TokenError):
            AuthService(APIConfig(jwt_secret=JWT_SECRET)).decode_token(token)

    def test_api_key_comparison(self):
        service = AuthService(APIConfig(jwt_secret=JWT_SECRET, api_key=API_KEY))
        assert service.check_api_key(API_KEY) is True
        assert service.check_api_key("nope") is False
        assert service.check_api_key(None) is False

    def test_api_key_disabled_when_unset(self):
        service = AuthService(APIConfig(jwt_secret=JWT_SECRET))
        assert service.check_api_key("") is False

    def test_codes_are_single_use(self):
        service = AuthService(APIConfig(jwt_secret=JWT_SECRET))
        assert service.claim_code("abc") is True
        assert service.claim_code("abc") is False


# =============================================================================
# Authentication
# =============================================================================

class TestAuthentication:
    """Tests for the authentication dependency via /auth/me."""

    def test_missing_credentials(self, client):
        response = client.get(ME)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "AUTH_MISSING_TOKEN"

    def test_garbage_token(self, client):
        response = client.get(ME, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_INVALID_TOKEN"

    def test_expired_token(self, client, seeded):
        token, _ = AuthService(APIConfig(jwt_secret=JWT_SECRET, jwt_expiry_hours=-1)).issue_token(MOD_ID)
        response = client.get(ME, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_TOKEN_EXPIRED"

    def test_api_key_with_user_id(self, client, seeded):
        response = client.get(ME, headers={"x-api-key": API_KEY, "x-user-id": MOD_ID})
        assert response.status_code == 200
        assert response.json()["data"]["user_id"] == MOD_ID

    def test_api_key_without_user_id(self, client, seeded):
        response = client.get(ME, headers={"x-api-key": API_KEY})
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_MISSING_USER_ID"

    def test_wrong_api_key_falls_back_to_bearer(self, client, seeded):
        response = client.get(ME, headers={"x-api-key": "wrong", "x-user-id": MOD_ID})
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_MISSING_TOKEN"


class TestMe:
    """Tests for GET /auth/me."""

    def test_permissions_across_guilds(self, client, bearer, seeded):
        response = client.get(ME, headers=bearer(MOD_ID))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["username"] == "user0002"
        assert data["is_admin"] is False
        assert data["permissions"] == ["dashboard_access", "view_logs"]
        assert data["server_permissions"] == {
            GUILD_ONE: ["dashboard_access", "view_logs"],
            GUILD_TWO: ["view_logs"],
        }
        names = {s["id"]: s["name"] for s in data["accessible_servers"]}
        assert names == {GUILD_ONE: "Guild One", GUILD_TWO: "Guild Two"}

    def test_scoped_token_sees_one_guild(self, client, bearer, seeded):
        response = client.get(ME, headers=bearer(MOD_ID, GUILD_ONE))

        assert response.status_code == 200
        assert list(response.json()["data"]["server_permissions"]) == [GUILD_ONE]

    def test_admin_flag(self, client, bearer, seeded):
        data = client.get(ME, headers=bearer(ADMIN_ID)).json()["data"]
        assert data["is_admin"] is True

    def test_no_grants_is_forbidden(self, client, bearer, seeded):
        response = client.get(ME, headers=bearer(OUTSIDER_ID))
        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_NO_DASHBOARD_ACCESS"

    def test_grant_then_revoke(self, client, bearer, test_db):
        """Access follows the stored grant without reissuing the token."""
        headers = bearer(OUTSIDER_ID, GUILD_ONE)

        test_db.save_dashboard_permissions(OUTSIDER_ID, GUILD_ONE, {Permission.VIEW_LOGS})
        assert client.get(ME, headers=headers).status_code == 200

        test_db.save_dashboard_permissions(OUTSIDER_ID, GUILD_ONE, set())
        assert client.get(ME, headers=headers).status_code == 403

    def test_log_listing_follows_grant(self, client, bearer, test_db):
        headers = bearer(OUTSIDER_ID, GUILD_ONE)

        test_db.save_dashboard_permissions(OUTSIDER_ID, GUILD_ONE, {Permission.VIEW_LOGS})
        assert client.get(LOGS, headers=headers).status_code == 200

        test_db.save_dashboard_permissions(OUTSIDER_ID, GUILD_ONE, set())
        response = client.get(LOGS, headers=headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_INSUFFICIENT_PERMISSIONS"

    def test_bot_not_ready_hides_unscoped_grants(self, client, bearer, seeded, mock_bot):
        mock_bot.is_ready.return_value = False

        assert client.get(ME, headers=bearer(MOD_ID)).status_code == 403
        assert client.get(ME, headers=bearer(MOD_ID, GUILD_ONE)).status_code == 200


# =============================================================================
# Discord Login
# =============================================================================

class TestDiscordCallback:
    """Tests for POST /auth/discord/callback."""

    def test_login_issues_token_and_logs(self, client, ctx, monkeypatch, seeded):
        _login_stub(monkeypatch, ctx, ADMIN_ID, "admin_user")

        response = client.post(CALLBACK, json={"code": "code-1"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["username"] == "admin_user"
        assert data["is_admin"] is True
        assert ctx.auth.decode_token(data["token"]).user_id == ADMIN_ID

        logins = [e for e in seeded.get_user_logs(ADMIN_ID) if e.action_type == "login"]
        assert len(logins) == 1
        assert logins[0].page == "login"
        assert logins[0].guild_id == DASHBOARD_GUILD_ID
        assert ctx.usernames.cache.get(ADMIN_ID) == "admin_user"

    def test_repeat_login_is_deduplicated(self, client, ctx, monkeypatch, seeded):
        _login_stub(monkeypatch, ctx, ADMIN_ID)

        assert client.post(CALLBACK, json={"code": "code-1"}).status_code == 200
        assert client.post(CALLBACK, json={"code": "code-2"}).status_code == 200

        logins = [e for e in seeded.get_user_logs(ADMIN_ID) if e.action_type == "login"]
        assert len(logins) == 1

    def test_guild_scoped_login(self, client, ctx, monkeypatch, seeded):
        _login_stub(monkeypatch, ctx, MOD_ID)

        response = client.post(CALLBACK, json={"code": "code-1", "guildId": GUILD_TWO})

        data = response.json()["data"]
        assert ctx.auth.decode_token(data["token"]).guild_id == GUILD_TWO
        assert [s["id"] for s in data["accessible_servers"]] == [GUILD_TWO]

    def test_login_without_grants_still_gets_token(self, client, ctx, monkeypatch, seeded):
        _login_stub(monkeypatch, ctx, OUTSIDER_ID)

        response = client.post(CALLBACK, json={"code": "code-1"})

        assert response.status_code == 200
        assert response.json()["data"]["accessible_servers"] == []

    def test_reused_code(self, client, ctx, monkeypatch):
        stub = _login_stub(monkeypatch, ctx, MOD_ID)

        assert client.post(CALLBACK, json={"code": "same"}).status_code == 200
        response = client.post(CALLBACK, json={"code": "same"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "AUTH_CODE_REUSED"
        assert stub.await_count == 1

    def test_missing_code(self, client):
        response = client.post(CALLBACK, json={})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_MISSING_FIELD"

    def test_exchange_failure(self, client, ctx, monkeypatch):
        monkeypatch.setattr(ctx.auth, "exchange_code", AsyncMock(side_effect=OAuthError("bad code")))

        response = client.post(CALLBACK, json={"code": "code-1"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_OAUTH_FAILED"

    def test_rate_limited(self, client):
        for _ in range(5):
            response = client.post(CALLBACK, json={})
            assert response.status_code == 400
            assert response.headers["X-RateLimit-Limit"] == "5"

        response = client.post(CALLBACK, json={})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.json()["error_code"] == "RATE_LIMIT_EXCEEDED"

    def test_me_is_not_rate_limited(self, client, bearer, seeded):
        for _ in range(8):
            assert client.get(ME, headers=bearer(MOD_ID)).status_code == 200


# =============================================================================
# Dashboard Logs
# =============================================================================

class TestLogViewer:
    """Tests for the read side of /dashboard-logs."""

    @pytest.fixture
    def logs(self, seeded):
        _log(seeded, "1001", GUILD_ONE)
        _log(seeded, "1002", GUILD_TWO)
        _log(seeded, "1003", DASHBOARD_GUILD_ID)
        return seeded

    def test_requires_view_logs(self, client, bearer, logs):
        response = client.get(LOGS, headers=bearer(OUTSIDER_ID))
        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_INSUFFICIENT_PERMISSIONS"

    def test_moderator_sees_granted_guilds(self, client, bearer, logs):
        body = client.get(LOGS, headers=bearer(MOD_ID)).json()

        assert {e["guild_id"] for e in body["data"]} == {GUILD_ONE, GUILD_TWO}
        assert body["pagination"]["total"] == 2

    def test_scoped_token_sees_one_guild(self, client, bearer, logs):
        body = client.get(LOGS, headers=bearer(MOD_ID, GUILD_ONE)).json()
        assert [e["user_id"] for e in body["data"]] == ["1001"]

    def test_admin_sees_dashboard_entries(self, client, bearer, logs):
        body = client.get(LOGS, headers=bearer(ADMIN_ID)).json()
        assert {e["guild_id"] for e in body["data"]} == {GUILD_ONE, DASHBOARD_GUILD_ID}

    def test_entries_are_enriched(self, client, bearer, logs):
        entry = client.get(LOGS, headers=bearer(MOD_ID, GUILD_ONE)).json()["data"][0]

        assert entry["username"] == "user1001"
        assert entry["action_label"] == "Data Export"
        assert entry["page_label"] == "Activity Logs"
        assert entry["status_display"] == "✅ Success"
        assert " at " in entry["created_at_display"]

    def test_pagination(self, client, bearer, seeded):
        for i in range(5):
            _log(seeded, "1001", GUILD_ONE, action=f"action_{i}")

        body = client.get(LOGS, params={"page": 3, "limit": 2}, headers=bearer(MOD_ID)).json()

        assert body["pagination"] == {"total": 5, "page": 3, "limit": 2, "pages": 3}
        assert [e["action_type"] for e in body["data"]] == ["action_0"]

    def test_limit_is_capped(self, client, bearer, seeded):
        response = client.get(LOGS, params={"limit": 101}, headers=bearer(MOD_ID))
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_filter_by_action(self, client, bearer, seeded):
        _log(seeded, "1001", GUILD_ONE, action="login", page="login")
        _log(seeded, "1001", GUILD_ONE, action="export_data")

        body = client.get(LOGS, params={"action_type": "login"}, headers=bearer(MOD_ID)).json()
        assert [e["action_type"] for e in body["data"]] == ["login"]

    def test_user_logs(self, client, bearer, logs):
        response = client.get(f"{LOGS}/users/1002", headers=bearer(MOD_ID))
        assert [e["guild_id"] for e in response.json()["data"]] == [GUILD_TWO]

    def test_recent_and_stats(self, client, bearer, logs):
        recent = client.get(f"{LOGS}/recent", headers=bearer(MOD_ID)).json()["data"]
        stats = client.get(f"{LOGS}/stats", headers=bearer(MOD_ID)).json()["data"]

        assert len(recent) == 2
        assert stats["total_actions"] == 2
        assert stats["unique_actors"] == 2
        assert stats["actions_by_kind"] == {"export_data": 2}
        assert stats["success_rate_percent"] == 100.0


class TestLogSubmission:
    """Tests for POST /dashboard-logs and cleanup."""

    def test_submit_and_deduplicate(self, client, bearer, seeded):
        body = {"user_id": MOD_ID, "action_type": "memberVerificationSuccess", "page": "dashboard"}

        first = client.post(LOGS, json=body, headers=bearer(MOD_ID))
        second = client.post(LOGS, json=body, headers=bearer(MOD_ID))

        assert first.status_code == 201
        assert first.json()["data"]["logged"] is True
        assert second.json()["data"]["logged"] is False

    def test_missing_field(self, client, bearer, seeded):
        response = client.post(LOGS, json={"user_id": MOD_ID, "action_type": "x"}, headers=bearer(MOD_ID))

        assert response.status_code == 400
        fields = [e["field"] for e in response.json()["details"]["errors"]]
        assert any(f.endswith("page") for f in fields)

    def test_submit_requires_auth(self, client):
        response = client.post(LOGS, json={"user_id": "1", "action_type": "x", "page": "y"})
        assert response.status_code == 401

    def test_cleanup_requires_admin(self, client, bearer, seeded):
        response = client.delete(f"{LOGS}/cleanup", headers=bearer(MOD_ID))
        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_NOT_ADMIN"

    def test_cleanup(self, client, bearer, seeded):
        _log(seeded, "1001", GUILD_ONE)

        response = client.delete(f"{LOGS}/cleanup", headers=bearer(ADMIN_ID))

        assert response.status_code == 200
        assert response.json()["data"] == {"deleted": 0, "days": 30}
        actions = [e.action_type for e in seeded.get_user_logs(ADMIN_ID)]
        assert actions == ["clean_logs"]

    def test_cleanup_only_touches_administered_guilds(self, client, bearer, seeded, frozen_clock):
        _log(seeded, "1001", GUILD_ONE)
        _log(seeded, "1002", GUILD_TWO)
        _log(seeded, "1003", DASHBOARD_GUILD_ID)
        frozen_clock.advance(days=40)

        response = client.delete(f"{LOGS}/cleanup", params={"days": 30}, headers=bearer(ADMIN_ID, GUILD_ONE))

        assert response.json()["data"]["deleted"] == 1
        remaining = {e.user_id for e in seeded.get_logs(LogFilter())[0]}
        assert remaining == {"1002", "1003", ADMIN_ID}

    def test_service_cleanup_covers_all_guilds(self, client, seeded, frozen_clock):
        _log(seeded, "1001", GUILD_ONE)
        _log(seeded, "1002", GUILD_TWO)
        _log(seeded, "1003", DASHBOARD_GUILD_ID)
        frozen_clock.advance(days=40)

        response = client.delete(
            f"{LOGS}/cleanup",
            params={"days": 30},
            headers={"x-api-key": API_KEY, "x-user-id": ADMIN_ID},
        )

        assert response.json()["data"]["deleted"] == 3

    def test_cleanup_storage_failure(self, client, bearer, ctx, seeded, monkeypatch):
        def failing_cleanup(*args, **kwargs):
            raise PersistenceError("disk I/O error")

        monkeypatch.setattr(ctx.db, "clean_old_logs", failing_cleanup)

        response = client.delete(f"{LOGS}/cleanup", headers=bearer(ADMIN_ID))

        assert response.status_code == 500
        assert response.json()["error_code"] == "SERVER_DATABASE_ERROR"

    def test_submit_without_grant_is_forbidden(self, client, bearer, seeded):
        body = {"user_id": OUTSIDER_ID, "action_type": "ban_user", "page": "moderation", "guild_id": GUILD_ONE}

        response = client.post(LOGS, json=body, headers=bearer(OUTSIDER_ID))

        assert response.status_code == 403
        assert seeded.get_logs(LogFilter(action_type="ban_user"))[1] == 0

    def test_submit_to_other_scoped_guild_is_forbidden(self, client, bearer, seeded):
        body = {"user_id": MOD_ID, "action_type": "ban_user", "page": "moderation", "guild_id": GUILD_TWO}

        response = client.post(LOGS, json=body, headers=bearer(MOD_ID, GUILD_ONE))

        assert response.status_code == 403

    def test_token_caller_logs_as_itself(self, client, bearer, seeded):
        body = {
            "user_id": ADMIN_ID,
            "username": "admin_user",
            "action_type": "ban_user",
            "page": "moderation",
            "guild_id": GUILD_ONE,
        }

        response = client.post(LOGS, json=body, headers=bearer(MOD_ID))

        assert response.status_code == 201
        [entry] = seeded.get_logs(LogFilter(action_type="ban_user"))[0]
        assert entry.user_id == MOD_ID
        assert entry.username is None

    def test_service_may_log_for_another_user(self, client, seeded):
        body = {"user_id": ADMIN_ID, "action_type": "ban_user", "page": "moderation", "guild_id": GUILD_ONE}

        response = client.post(LOGS, json=body, headers={"x-api-key": API_KEY, "x-user-id": MOD_ID})

        assert response.status_code == 201
        [entry] = seeded.get_logs(LogFilter(action_type="ban_user"))[0]
        assert entry.user_id == ADMIN_ID


# =============================================================================
# Admin
# =============================================================================

class TestAdmin:
    """Tests for /admin/users."""

    def test_list_users(self, client, bearer, seeded):
        response = client.get(ADMIN_USERS, params={"guildId": GUILD_ONE}, headers=bearer(ADMIN_ID))

        assert response.status_code == 200
        users = {u["user_id"]: u for u in response.json()["data"]}
        assert set(users) == {ADMIN_ID, MOD_ID}
        assert users[MOD_ID]["permissions"] == ["dashboard_access", "view_logs"]

    def test_list_requires_guild_admin(self, client, bearer, seeded):
        response = client.get(ADMIN_USERS, params={"guildId": GUILD_TWO}, headers=bearer(ADMIN_ID))
        assert response.status_code == 403

    def test_role_preset(self, client, bearer, seeded):
        response = client.put(
            f"{ADMIN_USERS}/{OUTSIDER_ID}",
            json={"guildId": GUILD_ONE, "role": "moderator", "permissions": ["view_tickets"]},
            headers=bearer(ADMIN_ID),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["role"] == "moderator"
        assert "view_tickets" not in data["permissions"]
        assert seeded.get_dashboard_permissions(OUTSIDER_ID, GUILD_ONE) == {
            Permission.DASHBOARD_ACCESS,
            Permission.VIEW_LOGS,
            Permission.MANAGE_WARNINGS,
            Permission.MANAGE_TICKETS,
            Permission.MODERATE_USERS,
        }

    def test_custom_permissions_are_audited(self, client, bearer, seeded):
        response = client.put(
            f"{ADMIN_USERS}/{MOD_ID}",
            json={"guildId": GUILD_ONE, "permissions": ["view_tickets"], "dashboardAccess": True},
            headers=bearer(ADMIN_ID),
        )

        assert response.status_code == 200
        assert response.json()["data"]["permissions"] == ["dashboard_access", "view_tickets"]

        [entry] = [e for e in seeded.get_user_logs(ADMIN_ID) if e.action_type == "update_permissions"]
        assert entry.target_id == MOD_ID
        assert entry.old_value == '["dashboard_access", "view_logs"]'
        assert entry.new_value == '["dashboard_access", "view_tickets"]'

    def test_invalid_permission(self, client, bearer, seeded):
        response = client.put(
            f"{ADMIN_USERS}/{MOD_ID}",
            json={"guildId": GUILD_ONE, "permissions": ["fly"]},
            headers=bearer(ADMIN_ID),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_INVALID_PERMISSION"
        assert seeded.get_dashboard_permissions(MOD_ID, GUILD_ONE) == {
            Permission.VIEW_LOGS,
            Permission.DASHBOARD_ACCESS,
        }

    def test_non_admin_forbidden(self, client, bearer, seeded):
        response = client.put(
            f"{ADMIN_USERS}/{OUTSIDER_ID}",
            json={"guildId": GUILD_ONE, "permissions": ["view_logs"]},
            headers=bearer(MOD_ID),
        )
        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_NOT_ADMIN"

    def test_token_scoped_to_other_guild(self, client, bearer, seeded):
        response = client.put(
            f"{ADMIN_USERS}/{OUTSIDER_ID}",
            json={"guildId": GUILD_ONE, "permissions": ["view_logs"]},
            headers=bearer(ADMIN_ID, GUILD_TWO),
        )
        assert response.status_code == 403


# =============================================================================
# Health
# =============================================================================

class TestHealth:
    """Tests for the health endpoint."""

    @pytest.mark.parametrize("path", ["/health", f"{API_PREFIX}/health"])
    def test_health(self, client, path):
        response = client.get(path)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "healthy"
        assert data["connected"] is True
        assert data["guilds"] == 2
        assert data["latency_ms"] == 42

    def test_unknown_route_uses_envelope(self, client):
        response = client.get(f"{API_PREFIX}/nope")
        assert response.status_code == 404
        assert response.json()["error_code"] == "HTTP_404"
