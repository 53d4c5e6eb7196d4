"""Batch battle scanning and leaderboard refresh.

`scan_battles` rescans battles whose stored aggregates are missing or stale
and writes fresh stats back through the assembler's sink.
`run_battle_scan` wires settings, client and database together for a
one-shot run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from wavewarz_analytics.battles.snapshot import (
    BattleScanResult,
    BattleSnapshotAssembler,
    ScanStatus,
    SnapshotCache,
)
from wavewarz_analytics.chain.client import SolanaClient
from wavewarz_analytics.storage.database import DatabaseManager
from wavewarz_analytics.storage.store import DatabaseBattleStore
from wavewarz_analytics.traders.leaderboard import TraderLeaderboard, build_trader_leaderboard

if TYPE_CHECKING:
    from wavewarz_analytics.battles.models import BattleSummary
    from wavewarz_analytics.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 50
MAX_BATCH_LIMIT = 200
DEFAULT_RESCAN_AFTER = timedelta(hours=24)


class ScanCandidateSource(Protocol):
    async def list_scan_candidates(
        self, *, stale_before: datetime, limit: int
    ) -> list[BattleSummary]: ...


@dataclass
class BattleScanReport:
    requested: int = 0
    succeeded: int = 0
    not_started: int = 0
    degraded: int = 0
    failed: int = 0
    results: dict[int, BattleScanResult] = field(default_factory=dict)

    @property
    def scanned(self) -> int:
        return len(self.results)


async def scan_battles(
    assembler: BattleSnapshotAssembler,
    store: ScanCandidateSource,
    *,
    limit: int = DEFAULT_BATCH_LIMIT,
    force_refresh: bool = True,
    rescan_after: timedelta = DEFAULT_RESCAN_AFTER,
    now: datetime | None = None,
) -> BattleScanReport:
    """Scan battles never scanned or last scanned more than `rescan_after` ago.

    Battles are scanned sequentially to stay within provider rate limits. A
    failed battle is recorded in the report and does not stop the batch.
    """
    limit = max(1, min(limit, MAX_BATCH_LIMIT))
    now = now or datetime.now(UTC)
    candidates = await store.list_scan_candidates(stale_before=now - rescan_after, limit=limit)

    report = BattleScanReport(requested=len(candidates))
    logger.info("Scanning %d battle(s) (limit=%d)", len(candidates), limit)

    for summary in candidates:
        result = await assembler.scan(summary, force_refresh=force_refresh)
        report.results[summary.battle_id] = result
        if result.status is ScanStatus.FOUND and result.error is not None:
            report.degraded += 1
            logger.warning(
                "Battle %s history scan failed, kept %s volume: %s",
                summary.battle_id,
                result.state.volume_status.value if result.state else "no",
                result.error,
            )
        elif result.status is ScanStatus.FOUND:
            report.succeeded += 1
        elif result.status is ScanStatus.NOT_STARTED:
            report.not_started += 1
        else:
            report.failed += 1
            logger.warning("Battle %s scan failed: %s", summary.battle_id, result.error)

    logger.info(
        "Battle scan finished: ok=%d degraded=%d not_started=%d failed=%d",
        report.succeeded,
        report.degraded,
        report.not_started,
        report.failed,
    )
    return report


async def refresh_trader_leaderboard(
    client: SolanaClient,
    store: DatabaseBattleStore,
    *,
    program_id: str,
    page_size: int,
    max_transactions: int,
) -> TraderLeaderboard:
    """Rebuild the trader leaderboard from every registered battle and store it."""
    battles = await store.list_summaries()
    leaderboard = await build_trader_leaderboard(
        client,
        battles,
        program_id=program_id,
        page_size=page_size,
        max_transactions=max_transactions,
    )
    stored = await store.save_trader_leaderboard(leaderboard.entries)
    logger.info("Stored %d trader leaderboard rows", stored)
    return leaderboard


async def run_battle_scan(
    settings: Settings,
    *,
    limit: int | None = None,
    force_refresh: bool = True,
) -> BattleScanReport:
    """One-shot batch scan using the configured RPC provider and database."""
    db = DatabaseManager.from_settings(settings)
    client = SolanaClient.from_settings(settings)
    try:
        store = DatabaseBattleStore(db)
        assembler = BattleSnapshotAssembler(
            client,
            program_id=settings.solana.program_id,
            cache=SnapshotCache(timedelta(seconds=settings.scan.snapshot_cache_ttl_seconds)),
            stats_sink=store,
            battle_page_size=settings.scan.battle_page_size,
            battle_max_transactions=settings.scan.battle_max_transactions,
        )
        return await scan_battles(
            assembler,
            store,
            limit=limit or settings.scan.batch_limit,
            force_refresh=force_refresh,
            rescan_after=timedelta(hours=settings.scan.rescan_after_hours),
        )
    finally:
        await client.aclose()
        await db.dispose()


async def run_trader_leaderboard_refresh(settings: Settings) -> TraderLeaderboard:
    """One-shot trader leaderboard rebuild from the registered battles."""
    db = DatabaseManager.from_settings(settings)
    client = SolanaClient.from_settings(settings)
    try:
        return await refresh_trader_leaderboard(
            client,
            DatabaseBattleStore(db),
            program_id=settings.solana.program_id,
            page_size=settings.scan.battle_page_size,
            max_transactions=settings.scan.leaderboard_max_transactions,
        )
    finally:
        await client.aclose()
        await db.dispose()
