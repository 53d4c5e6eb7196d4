"""Repository pattern implementations for data access.

This module provides data access for the battle registry and the
materialized trader leaderboard.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from wavewarz_analytics.battles.models import BattleSummary, RecentTrade, Side
from wavewarz_analytics.storage.models import BattleModel, TraderLeaderboardModel
from wavewarz_analytics.traders.models import TraderLeaderboardEntry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from wavewarz_analytics.battles.models import BattleState

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on round trip.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _insert_for(session: AsyncSession, model: type[Any]) -> Any:
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


def summary_from_model(model: BattleModel) -> BattleSummary:
    created_at = _aware(model.created_at)
    assert created_at is not None
    return BattleSummary(
        id=model.id,
        battle_id=int(model.battle_id),
        created_at=created_at,
        side_a=Side(
            name=model.artist_a_name,
            wallet=model.artist_a_wallet,
            color=model.artist_a_color,
            avatar=model.artist_a_avatar,
            twitter=model.artist_a_twitter,
            music_link=model.artist_a_music_link,
            mint=model.artist_a_mint,
        ),
        side_b=Side(
            name=model.artist_b_name,
            wallet=model.artist_b_wallet,
            color=model.artist_b_color,
            avatar=model.artist_b_avatar,
            twitter=model.artist_b_twitter,
            music_link=model.artist_b_music_link,
            mint=model.artist_b_mint,
        ),
        battle_duration_seconds=model.battle_duration,
        status=model.status,
        winner_decided=model.winner_decided,
        image_url=model.image_url,
        stream_link=model.stream_link,
        is_community_battle=model.is_community_battle,
        is_test_battle=model.is_test_battle,
        artist_a_sol_balance=model.artist_a_pool,
        artist_b_sol_balance=model.artist_b_pool,
        total_volume_a=model.total_volume_a,
        total_volume_b=model.total_volume_b,
        trade_count=model.trade_count,
        unique_traders=model.unique_traders,
        recent_trades=tuple(RecentTrade.from_dict(t) for t in model.recent_trades or []),
        last_scanned_at=_aware(model.last_scanned_at),
    )


class BattleRepository:
    """Repository for the battle registry."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_battle_id(self, battle_id: int) -> BattleSummary | None:
        result = await self.session.execute(
            select(BattleModel).where(BattleModel.battle_id == battle_id)
        )
        model = result.scalar_one_or_none()
        return summary_from_model(model) if model else None

    async def list_summaries(
        self,
        *,
        limit: int | None = None,
        include_test: bool = True,
    ) -> list[BattleSummary]:
        """List battles, newest first."""
        stmt = select(BattleModel).order_by(BattleModel.created_at.desc())
        if not include_test:
            stmt = stmt.where(BattleModel.is_test_battle.is_(False))
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [summary_from_model(m) for m in result.scalars().all()]

    async def list_scan_candidates(
        self,
        *,
        stale_before: datetime,
        limit: int,
    ) -> list[BattleSummary]:
        """Battles never scanned or last scanned before `stale_before`, newest first."""
        stmt = (
            select(BattleModel)
            .where(
                or_(
                    BattleModel.last_scanned_at.is_(None),
                    BattleModel.last_scanned_at < stale_before,
                )
            )
            .order_by(BattleModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [summary_from_model(m) for m in result.scalars().all()]

    async def upsert_summary(self, summary: BattleSummary) -> None:
        """Insert or update battle metadata by id. Scan aggregates are left untouched."""
        values = {
            "id": summary.id,
            "battle_id": summary.battle_id,
            "created_at": summary.created_at,
            "battle_duration": summary.battle_duration_seconds,
            "status": summary.status,
            "winner_decided": summary.winner_decided,
            "image_url": summary.image_url,
            "stream_link": summary.stream_link,
            "is_community_battle": summary.is_community_battle,
            "is_test_battle": summary.is_test_battle,
        }
        for prefix, side in (("artist_a", summary.side_a), ("artist_b", summary.side_b)):
            values.update(
                {
                    f"{prefix}_name": side.name,
                    f"{prefix}_wallet": side.wallet,
                    f"{prefix}_color": side.color,
                    f"{prefix}_avatar": side.avatar,
                    f"{prefix}_twitter": side.twitter,
                    f"{prefix}_music_link": side.music_link,
                    f"{prefix}_mint": side.mint,
                }
            )
        now = datetime.now(UTC)
        stmt = _insert_for(self.session, BattleModel).values(**values, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                **{key: getattr(stmt.excluded, key) for key in values if key != "id"},
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def update_dynamic_stats(self, state: BattleState) -> bool:
        """Write a completed scan's aggregates back to its battle row.

        Returns:
            False if the battle is not registered.
        """
        result = await self.session.execute(
            update(BattleModel)
            .where(BattleModel.battle_id == state.battle_id)
            .values(
                artist_a_pool=state.artist_a_sol_balance,
                artist_b_pool=state.artist_b_sol_balance,
                total_volume_a=state.total_volume_a,
                total_volume_b=state.total_volume_b,
                trade_count=state.trade_count,
                unique_traders=state.unique_traders,
                recent_trades=[t.to_dict() for t in state.recent_trades],
                winner_decided=state.winner_decided,
                last_scanned_at=state.scanned_at,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()
        return bool(result.rowcount)


class TraderLeaderboardRepository:
    """Repository for the materialized trader leaderboard."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_many(self, entries: Iterable[TraderLeaderboardEntry]) -> int:
        now = datetime.now(UTC)
        count = 0
        for entry in entries:
            values = {
                "wallet": entry.wallet,
                "total_invested": entry.total_invested,
                "total_payout": entry.total_payout,
                "net_pnl": entry.net_pnl,
                "roi": entry.roi,
                "battles_participated": entry.battles_participated,
                "wins": entry.wins,
                "losses": entry.losses,
                "win_rate": Decimal(str(round(entry.win_rate, 4))),
                "updated_at": now,
            }
            stmt = _insert_for(self.session, TraderLeaderboardModel).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["wallet"],
                set_={key: getattr(stmt.excluded, key) for key in values if key != "wallet"},
            )
            await self.session.execute(stmt)
            count += 1
        await self.session.flush()
        logger.debug("Upserted %d trader leaderboard rows", count)
        return count

    async def top(self, limit: int = 50) -> list[TraderLeaderboardEntry]:
        """Leaderboard rows by net P&L, best first."""
        result = await self.session.execute(
            select(TraderLeaderboardModel)
            .order_by(TraderLeaderboardModel.net_pnl.desc())
            .limit(limit)
        )
        return [
            TraderLeaderboardEntry(
                wallet=m.wallet,
                total_invested=m.total_invested,
                total_payout=m.total_payout,
                battles_participated=m.battles_participated,
                wins=m.wins,
                losses=m.losses,
            )
            for m in result.scalars().all()
        ]
