"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Exercise the async engine against a real SQLite file: schema creation,
commit and rollback semantics, health checks and lifecycle errors.

Testing Strategy
----------------
- Real database, no mocks
- Fresh file per test (``tmp_path``)
"""

import pytest
from sqlalchemy import func, select, text

from taskquest.core.database.service import DatabaseService
from taskquest.core.exceptions import DatabaseNotInitializedError
from taskquest.database.models import PlayerStatsModel

pytestmark = [pytest.mark.integration, pytest.mark.database]


async def player_rows() -> int:
    async with DatabaseService.get_session() as session:
        return (await session.execute(select(func.count()).select_from(PlayerStatsModel))).scalar_one()


# ============================================================================
# CONNECTION & SCHEMA
# ============================================================================


class TestDatabaseConnection:
    async def test_select_one(self, database):
        async with DatabaseService.get_session() as session:
            row = (await session.execute(text("SELECT 1 AS value"))).fetchone()

        assert row.value == 1

    async def test_schema_created(self, database):
        async with DatabaseService.get_session() as session:
            result = await session.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'"))
            tables = {row.name for row in result.fetchall()}

        assert {"tasks", "archived_tasks", "player_stats", "push_targets", "notifications", "game_config"} <= tables

    async def test_health_check_and_metrics(self, database):
        assert await DatabaseService.health_check() is True

        metrics = DatabaseService.get_metrics()
        assert metrics["initialized"] is True
        assert metrics["url_scheme"].startswith("sqlite")


# ============================================================================
# TRANSACTIONS
# ============================================================================


class TestTransactions:
    async def test_commit(self, database):
        async with DatabaseService.get_transaction() as session:
            session.add(PlayerStatsModel(id="1", name="Alex", exp=10, claimed_rewards=[]))

        assert await player_rows() == 1
        assert DatabaseService.get_metrics()["transactions_committed"] >= 1

    async def test_rollback_on_exception(self, database):
        with pytest.raises(RuntimeError):
            async with DatabaseService.get_transaction() as session:
                session.add(PlayerStatsModel(id="1", name="Alex", exp=10, claimed_rewards=[]))
                await session.flush()
                raise RuntimeError("abort")

        assert await player_rows() == 0
        assert DatabaseService.get_metrics()["rollback_errors"].get("RuntimeError", 0) >= 1


# ============================================================================
# LIFECYCLE
# ============================================================================


class TestLifecycle:
    async def test_use_before_initialize(self):
        await DatabaseService.shutdown()

        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass

        assert await DatabaseService.health_check() is False
