"""Session-scoped store facade used by scans and assemblers.

`DatabaseBattleStore` supplies battle summaries and satisfies the
`BattleStatsSink` protocol, opening one short transaction per call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from wavewarz_analytics.storage.repos import BattleRepository, TraderLeaderboardRepository

if TYPE_CHECKING:
    from wavewarz_analytics.battles.models import BattleState, BattleSummary
    from wavewarz_analytics.storage.database import DatabaseManager
    from wavewarz_analytics.traders.models import TraderLeaderboardEntry

logger = logging.getLogger(__name__)


class DatabaseBattleStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def list_summaries(
        self, *, limit: int | None = None, include_test: bool = True
    ) -> list[BattleSummary]:
        async with self._db.session() as session:
            return await BattleRepository(session).list_summaries(
                limit=limit, include_test=include_test
            )

    async def list_scan_candidates(self, *, stale_before: datetime, limit: int) -> list[BattleSummary]:
        async with self._db.session() as session:
            return await BattleRepository(session).list_scan_candidates(
                stale_before=stale_before, limit=limit
            )

    async def get_summary(self, battle_id: int) -> BattleSummary | None:
        async with self._db.session() as session:
            return await BattleRepository(session).get_by_battle_id(battle_id)

    async def save_battle_stats(self, state: BattleState) -> None:
        async with self._db.session() as session:
            updated = await BattleRepository(session).update_dynamic_stats(state)
        if not updated:
            logger.warning("Battle %s is not registered; stats not stored", state.battle_id)

    async def save_trader_leaderboard(self, entries: Iterable[TraderLeaderboardEntry]) -> int:
        async with self._db.session() as session:
            return await TraderLeaderboardRepository(session).upsert_many(entries)
