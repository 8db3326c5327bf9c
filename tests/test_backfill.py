"""
ModBoard - Username Backfill Tests
==================================

Tests for the background queue that writes resolved usernames back into
the activity log.
"""

from unittest.mock import MagicMock

import pytest

from src.core.database import ActivityLogEntry
from src.api.services import backfill as backfill_module
from src.api.services.backfill import BackfillQueue


def _log(db, user_id, action, username=None):
    db.log_activity(ActivityLogEntry(
        user_id=user_id,
        action_type=action,
        page="logs",
        username=username,
    ))


class TestBackfillQueue:
    """Tests for BackfillQueue."""

    @pytest.mark.asyncio
    async def test_fills_missing_usernames(self, test_db):
        _log(test_db, "42", "login")
        _log(test_db, "42", "export_data")
        _log(test_db, "42", "logout", username="kept")
        _log(test_db, "7", "login")

        queue = BackfillQueue(test_db, workers=1)
        await queue.start()
        try:
            assert queue.submit("42", "alice") is True
            await queue.join()
        finally:
            await queue.stop()

        names = {e.action_type: e.username for e in test_db.get_user_logs("42")}
        assert names == {"login": "alice", "export_data": "alice", "logout": "kept"}
        assert test_db.get_user_logs("7")[0].username is None
        assert queue.completed == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops(self, test_db):
        queue = BackfillQueue(test_db, max_size=1)

        assert queue.submit("1", "a") is True
        assert queue.submit("2", "b") is False
        assert queue.dropped == 1
        assert queue.pending == 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, test_db):
        queue = BackfillQueue(test_db, workers=2)
        await queue.start()
        await queue.start()
        try:
            assert queue.is_running
            assert len(queue._workers) == 2
        finally:
            await queue.stop()
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_failed_write_is_retried_then_given_up(self, monkeypatch):
        monkeypatch.setattr(backfill_module, "RETRY_DELAY", 0)
        db = MagicMock()
        db.backfill_username.side_effect = RuntimeError("disk gone")

        queue = BackfillQueue(db, workers=1)
        await queue.start()
        try:
            queue.submit("1", "a")
            await queue.join()
        finally:
            await queue.stop()

        assert db.backfill_username.call_count == backfill_module.MAX_ATTEMPTS
        assert queue.failed == 1
        assert queue.completed == 0
