"""Tests for the compensation log and per-user locks."""

import pytest

from pennywise.ledger import CompensationLog, UserLockRegistry


class TestCompensationLog:
    """Tests for undo ordering and failure handling."""

    @pytest.mark.asyncio
    async def test_rollback_runs_newest_first(self):
        undone = []
        log = CompensationLog("test")

        async def undo(name):
            undone.append(name)

        log.record("first", lambda: undo("first"))
        log.record("second", lambda: undo("second"))
        assert log.steps == ["first", "second"]

        failures = await log.rollback()

        assert failures == []
        assert undone == ["second", "first"]
        assert log.steps == []

    @pytest.mark.asyncio
    async def test_rollback_continues_after_failure(self):
        """Test a failing undo doesn't stop the older ones."""
        undone = []
        log = CompensationLog("test")

        async def ok():
            undone.append("ok")

        async def broken():
            raise RuntimeError("undo failed")

        log.record("ok", ok)
        log.record("broken", broken)

        failures = await log.rollback()

        assert [str(f) for f in failures] == ["undo failed"]
        assert undone == ["ok"]


class TestUserLockRegistry:
    """Tests for per-user locks."""

    def test_same_user_same_lock(self):
        locks = UserLockRegistry()
        assert locks.lock_for("alex@example.com") is locks.lock_for(" ALEX@example.com ")

    def test_different_users_different_locks(self):
        locks = UserLockRegistry()
        assert locks.lock_for("alex@example.com") is not locks.lock_for("sam@example.com")

    @pytest.mark.asyncio
    async def test_lock_kept_after_release(self):
        """Test a released lock stays registered for the next request."""
        locks = UserLockRegistry()
        first = locks.lock_for("alex@example.com")
        async with first:
            pass

        assert locks.lock_for("alex@example.com") is first
        assert len(locks._locks) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
