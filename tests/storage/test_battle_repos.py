"""Tests for storage repositories."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wavewarz_analytics.battles.models import (
    BattleState,
    RecentTrade,
    SnapshotSource,
    TradeType,
    VolumeStatus,
)
from wavewarz_analytics.storage.database import DatabaseManager, async_database_url
from wavewarz_analytics.storage.models import Base
from wavewarz_analytics.storage.repos import BattleRepository, TraderLeaderboardRepository
from wavewarz_analytics.storage.store import DatabaseBattleStore
from wavewarz_analytics.traders.models import TraderLeaderboardEntry

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def scanned_state(make_summary):
    def _make(summary, scanned_at: datetime) -> BattleState:
        return BattleState(
            summary=summary,
            battle_address="B",
            vault_address="V",
            start_time=summary.created_at,
            end_time=summary.scheduled_end,
            is_ended=True,
            artist_a_sol_balance=Decimal("60.5"),
            artist_b_sol_balance=Decimal("39.5"),
            source=SnapshotSource.CHAIN,
            volume_status=VolumeStatus.COMPLETE,
            scanned_at=scanned_at,
            winner_decided=True,
            total_volume_a=Decimal("4.2"),
            total_volume_b=Decimal("2.8"),
            trade_count=2,
            unique_traders=2,
            recent_trades=(
                RecentTrade(
                    signature="sig1",
                    amount=Decimal(5),
                    type=TradeType.BUY,
                    timestamp=scanned_at,
                    trader="W1",
                ),
            ),
        )

    return _make


# ============================================================================
# BattleRepository
# ============================================================================


class TestBattleRepository:
    @pytest.mark.asyncio
    async def test_upsert_and_get(self, async_session, make_summary) -> None:
        repo = BattleRepository(async_session)
        await repo.upsert_summary(make_summary(1001))

        loaded = await repo.get_by_battle_id(1001)

        assert loaded is not None
        assert loaded.id == "battle-1001"
        assert loaded.side_a.name == "Nova"
        assert loaded.created_at == make_summary(1001).created_at
        assert loaded.has_cached_stats is False

    @pytest.mark.asyncio
    async def test_get_missing(self, async_session) -> None:
        assert await BattleRepository(async_session).get_by_battle_id(1) is None

    @pytest.mark.asyncio
    async def test_upsert_updates_metadata(self, async_session, make_summary) -> None:
        repo = BattleRepository(async_session)
        await repo.upsert_summary(make_summary(1001))
        await repo.upsert_summary(make_summary(1001, status="ENDED"))

        loaded = await repo.get_by_battle_id(1001)
        assert loaded is not None
        assert loaded.status == "ENDED"
        assert len(await repo.list_summaries()) == 1

    @pytest.mark.asyncio
    async def test_update_dynamic_stats(self, async_session, make_summary, scanned_state) -> None:
        repo = BattleRepository(async_session)
        summary = make_summary(1001)
        await repo.upsert_summary(summary)
        scanned_at = datetime(2026, 3, 2, tzinfo=UTC)

        assert await repo.update_dynamic_stats(scanned_state(summary, scanned_at)) is True

        loaded = await repo.get_by_battle_id(1001)
        assert loaded is not None
        assert loaded.has_cached_stats
        assert loaded.artist_a_sol_balance == Decimal("60.5")
        assert loaded.total_volume_a == Decimal("4.2")
        assert loaded.trade_count == 2
        assert loaded.winner_decided is True
        assert loaded.last_scanned_at == scanned_at
        assert loaded.recent_trades[0].trader == "W1"

    @pytest.mark.asyncio
    async def test_upsert_keeps_scan_aggregates(
        self, async_session, make_summary, scanned_state
    ) -> None:
        repo = BattleRepository(async_session)
        summary = make_summary(1001)
        await repo.upsert_summary(summary)
        await repo.update_dynamic_stats(scanned_state(summary, datetime(2026, 3, 2, tzinfo=UTC)))

        await repo.upsert_summary(replace(summary, image_url="https://example.com/new.png"))

        loaded = await repo.get_by_battle_id(1001)
        assert loaded is not None
        assert loaded.image_url == "https://example.com/new.png"
        assert loaded.trade_count == 2

    @pytest.mark.asyncio
    async def test_update_unknown_battle(self, async_session, make_summary, scanned_state) -> None:
        state = scanned_state(make_summary(404), datetime(2026, 3, 2, tzinfo=UTC))
        assert await BattleRepository(async_session).update_dynamic_stats(state) is False

    @pytest.mark.asyncio
    async def test_list_summaries_newest_first(self, async_session, make_summary) -> None:
        repo = BattleRepository(async_session)
        base = datetime(2026, 3, 1, tzinfo=UTC)
        await repo.upsert_summary(make_summary(1, created_at=base))
        await repo.upsert_summary(make_summary(2, created_at=base + timedelta(days=1)))
        await repo.upsert_summary(
            make_summary(3, created_at=base + timedelta(days=2), is_test_battle=True)
        )

        assert [s.battle_id for s in await repo.list_summaries()] == [3, 2, 1]
        assert [s.battle_id for s in await repo.list_summaries(include_test=False)] == [2, 1]
        assert [s.battle_id for s in await repo.list_summaries(limit=1)] == [3]

    @pytest.mark.asyncio
    async def test_list_scan_candidates(self, async_session, make_summary, scanned_state) -> None:
        repo = BattleRepository(async_session)
        now = datetime(2026, 3, 10, tzinfo=UTC)
        never = make_summary(1)
        stale = make_summary(2)
        fresh = make_summary(3)
        for summary in (never, stale, fresh):
            await repo.upsert_summary(summary)
        await repo.update_dynamic_stats(scanned_state(stale, now - timedelta(days=2)))
        await repo.update_dynamic_stats(scanned_state(fresh, now - timedelta(hours=1)))

        candidates = await repo.list_scan_candidates(stale_before=now - timedelta(hours=24), limit=10)

        assert {s.battle_id for s in candidates} == {1, 2}


# ============================================================================
# TraderLeaderboardRepository
# ============================================================================


class TestTraderLeaderboardRepository:
    @pytest.mark.asyncio
    async def test_upsert_many_and_top(self, async_session) -> None:
        repo = TraderLeaderboardRepository(async_session)
        entries = [
            TraderLeaderboardEntry("Alice", Decimal(5), Decimal(6), 2, 1, 0),
            TraderLeaderboardEntry("Bob", Decimal(5), Decimal(1), 1, 0, 1),
        ]
        assert await repo.upsert_many(entries) == 2

        top = await repo.top(limit=10)
        assert [e.wallet for e in top] == ["Alice", "Bob"]
        assert top[0].net_pnl == Decimal(1)

    @pytest.mark.asyncio
    async def test_upsert_replaces_row(self, async_session) -> None:
        repo = TraderLeaderboardRepository(async_session)
        await repo.upsert_many([TraderLeaderboardEntry("Alice", Decimal(5), Decimal(6), 2, 1, 0)])
        await repo.upsert_many([TraderLeaderboardEntry("Alice", Decimal(5), Decimal(2), 3, 1, 1)])

        top = await repo.top()
        assert len(top) == 1
        assert top[0].total_payout == Decimal(2)
        assert top[0].battles_participated == 3


# ============================================================================
# DatabaseBattleStore
# ============================================================================


class TestDatabaseBattleStore:
    @pytest.mark.asyncio
    async def test_sink_writes_through(self, tmp_path, make_summary, scanned_state) -> None:
        db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
        await db.create_schema()
        store = DatabaseBattleStore(db)
        try:
            summary = make_summary(1001)
            async with db.session() as session:
                await BattleRepository(session).upsert_summary(summary)

            await store.save_battle_stats(scanned_state(summary, datetime(2026, 3, 2, tzinfo=UTC)))

            loaded = await store.get_summary(1001)
            assert loaded is not None
            assert loaded.trade_count == 2
            assert [s.id for s in await store.list_summaries()] == ["battle-1001"]
        finally:
            await db.dispose()

    @pytest.mark.asyncio
    async def test_unregistered_battle_is_not_an_error(
        self, tmp_path, make_summary, scanned_state
    ) -> None:
        db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
        await db.create_schema()
        try:
            state = scanned_state(make_summary(7), datetime(2026, 3, 2, tzinfo=UTC))
            await DatabaseBattleStore(db).save_battle_stats(state)
        finally:
            await db.dispose()


class TestDatabaseManager:
    def test_plain_urls_use_async_drivers(self) -> None:
        assert async_database_url("postgresql://u:p@db/wave") == "postgresql+asyncpg://u:p@db/wave"
        assert async_database_url("sqlite:///local.db") == "sqlite+aiosqlite:///local.db"
        assert async_database_url("postgresql+asyncpg://db/wave") == "postgresql+asyncpg://db/wave"

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_error(self, tmp_path, make_summary) -> None:
        db = DatabaseManager(f"sqlite:///{tmp_path / 'rollback.db'}")
        await db.create_schema()
        try:
            with pytest.raises(RuntimeError):
                async with db.session() as session:
                    await BattleRepository(session).upsert_summary(make_summary(5))
                    raise RuntimeError("boom")

            async with db.session() as session:
                assert await BattleRepository(session).get_by_battle_id(5) is None
        finally:
            await db.dispose()
