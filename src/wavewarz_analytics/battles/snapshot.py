"""Battle snapshot assembly with a short-lived in-memory cache.

A scan derives the battle's addresses, reads and decodes its account,
reconstructs trading activity from history and merges everything into a
BattleState. Results are tagged so callers can tell "not started" from
"scan failed" from "no trades yet".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from wavewarz_analytics.battles.models import (
    BattleState,
    BattleSummary,
    SnapshotSource,
    VolumeStatus,
)
from wavewarz_analytics.battles.volume import (
    BATTLE_MAX_TRANSACTIONS,
    BATTLE_PAGE_SIZE,
    PartialReconstructionError,
    reconstruct_volume,
)
from wavewarz_analytics.chain.addresses import derive_battle_addresses
from wavewarz_analytics.chain.client import ChainClientError
from wavewarz_analytics.chain.decoder import BattleDecodeError, decode_battle_account
from wavewarz_analytics.config import DEFAULT_PROGRAM_ID

if TYPE_CHECKING:
    from wavewarz_analytics.chain.client import SolanaClient

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_TTL = timedelta(minutes=5)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class BattleStatsSink(Protocol):
    """Receives completed snapshots for longer-term storage."""

    async def save_battle_stats(self, state: BattleState) -> None: ...


class ScanStatus(str, Enum):
    FOUND = "found"
    NOT_STARTED = "not_started"
    FAILED = "failed"


@dataclass(frozen=True)
class BattleScanResult:
    """Outcome of one snapshot request.

    FOUND carries a state (check `state.volume_status` for degraded volume);
    NOT_STARTED carries a zero state tagged `SnapshotSource.NOT_STARTED`;
    FAILED carries the error and no state.
    """

    status: ScanStatus
    state: BattleState | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is not ScanStatus.FAILED

    def raise_for_status(self) -> BattleState:
        if self.status is ScanStatus.FAILED:
            assert self.error is not None
            raise self.error
        assert self.state is not None
        return self.state


class SnapshotCache:
    """In-memory battle-id -> snapshot map with a fixed TTL.

    Expired entries are dropped lazily when read. Access is expected from a
    single event loop; no locking.
    """

    def __init__(self, ttl: timedelta = DEFAULT_SNAPSHOT_TTL, *, clock: Clock = utc_now) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[int, tuple[datetime, BattleState]] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def get(self, battle_id: int) -> BattleState | None:
        entry = self._entries.get(battle_id)
        if entry is None:
            return None
        stored_at, state = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[battle_id]
            return None
        return state

    def put(self, battle_id: int, state: BattleState) -> None:
        self._entries[battle_id] = (self._clock(), state)

    def invalidate(self, battle_id: int) -> None:
        self._entries.pop(battle_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class BattleSnapshotAssembler:
    """Builds point-in-time BattleStates on demand.

    Example:
        ```python
        assembler = BattleSnapshotAssembler(client, stats_sink=store)
        result = await assembler.scan(summary)
        if result.status is ScanStatus.FOUND:
            render(result.state)
        ```
    """

    def __init__(
        self,
        client: SolanaClient,
        *,
        program_id: str = DEFAULT_PROGRAM_ID,
        cache: SnapshotCache | None = None,
        stats_sink: BattleStatsSink | None = None,
        battle_page_size: int = BATTLE_PAGE_SIZE,
        battle_max_transactions: int = BATTLE_MAX_TRANSACTIONS,
        clock: Clock = utc_now,
    ) -> None:
        self._client = client
        self._program_id = program_id
        self._clock = clock
        self._cache = cache or SnapshotCache(clock=clock)
        self._sink = stats_sink
        self._page_size = battle_page_size
        self._max_transactions = battle_max_transactions
        self._inflight: dict[int, asyncio.Task[BattleScanResult]] = {}

    @property
    def cache(self) -> SnapshotCache:
        return self._cache

    async def scan(self, summary: BattleSummary, *, force_refresh: bool = False) -> BattleScanResult:
        """Return the battle's current state, reading the chain only when needed.

        Args:
            summary: Battle metadata (with any previously stored aggregates).
            force_refresh: Ignore the summary's stored aggregates and the cache.
        """
        if not force_refresh:
            from_summary = self._state_from_fresh_summary(summary)
            if from_summary is not None:
                return BattleScanResult(ScanStatus.FOUND, state=from_summary)

            cached = self._cache.get(summary.battle_id)
            if cached is not None:
                return BattleScanResult(ScanStatus.FOUND, state=cached)

        # Concurrent requests for the same battle share one chain read.
        task = self._inflight.get(summary.battle_id)
        if task is None:
            task = asyncio.ensure_future(self._scan_chain(summary))
            self._inflight[summary.battle_id] = task
            task.add_done_callback(lambda _t: self._inflight.pop(summary.battle_id, None))
        return await asyncio.shield(task)

    def _state_from_fresh_summary(self, summary: BattleSummary) -> BattleState | None:
        if not summary.has_cached_stats or summary.last_scanned_at is None:
            return None
        now = self._clock()
        if now - summary.last_scanned_at >= self._cache.ttl:
            return None

        # Start/end are not stored with the summary; approximate from metadata.
        addresses = derive_battle_addresses(summary.battle_id, self._program_id)
        return BattleState(
            summary=summary,
            battle_address=addresses.battle,
            vault_address=addresses.vault,
            start_time=summary.created_at,
            end_time=summary.scheduled_end,
            is_ended=now > summary.scheduled_end,
            artist_a_sol_balance=summary.artist_a_sol_balance or Decimal(0),
            artist_b_sol_balance=summary.artist_b_sol_balance or Decimal(0),
            source=SnapshotSource.CACHED_SUMMARY,
            volume_status=VolumeStatus.CACHED,
            scanned_at=summary.last_scanned_at,
            winner_decided=summary.winner_decided,
            total_volume_a=summary.total_volume_a or Decimal(0),
            total_volume_b=summary.total_volume_b or Decimal(0),
            trade_count=summary.trade_count or 0,
            unique_traders=summary.unique_traders or 0,
            recent_trades=summary.recent_trades,
        )

    async def _scan_chain(self, summary: BattleSummary) -> BattleScanResult:
        addresses = derive_battle_addresses(summary.battle_id, self._program_id)
        now = self._clock()

        try:
            data = await self._client.get_account_data(addresses.battle)
        except ChainClientError as e:
            logger.warning("Account read failed for battle %s: %s", summary.battle_id, e)
            return BattleScanResult(ScanStatus.FAILED, error=e)

        if data is None:
            logger.info("Battle %s has no on-chain account yet", summary.battle_id)
            return BattleScanResult(
                ScanStatus.NOT_STARTED,
                state=BattleState(
                    summary=summary,
                    battle_address=addresses.battle,
                    vault_address=addresses.vault,
                    start_time=now,
                    end_time=now + timedelta(seconds=summary.battle_duration_seconds),
                    is_ended=False,
                    artist_a_sol_balance=Decimal(0),
                    artist_b_sol_balance=Decimal(0),
                    source=SnapshotSource.NOT_STARTED,
                    volume_status=VolumeStatus.NOT_SCANNED,
                    scanned_at=now,
                ),
            )

        try:
            account = decode_battle_account(data, now=now)
        except BattleDecodeError as e:
            logger.warning("Battle %s account could not be decoded: %s", summary.battle_id, e)
            return BattleScanResult(ScanStatus.FAILED, error=e)

        state = BattleState(
            summary=summary,
            battle_address=addresses.battle,
            vault_address=addresses.vault,
            start_time=account.start_time,
            end_time=account.end_time,
            is_ended=account.is_ended,
            artist_a_sol_balance=account.artist_a_sol_balance,
            artist_b_sol_balance=account.artist_b_sol_balance,
            source=SnapshotSource.CHAIN,
            volume_status=VolumeStatus.COMPLETE,
            scanned_at=now,
            artist_a_supply=account.artist_a_supply,
            artist_b_supply=account.artist_b_supply,
            winner_decided=account.winner_decided,
            winner_is_a=account.winner_is_a,
            total_distribution=account.total_distribution,
            on_chain_wallet_a=account.artist_a_wallet,
            on_chain_wallet_b=account.artist_b_wallet,
            on_chain_mint_a=account.mint_a,
            on_chain_mint_b=account.mint_b,
            treasury_wallet=account.treasury_wallet,
        )

        try:
            volume = await reconstruct_volume(
                self._client,
                addresses.battle,
                addresses.vault,
                account.artist_a_sol_balance,
                account.artist_b_sol_balance,
                page_size=self._page_size,
                max_transactions=self._max_transactions,
            )
        except PartialReconstructionError as e:
            logger.warning(
                "History scan failed for battle %s, returning account state without fresh volume: %s",
                summary.battle_id,
                e,
            )
            return BattleScanResult(ScanStatus.FOUND, state=self._with_fallback_volume(state), error=e)

        state = replace(
            state,
            total_volume_a=volume.volume_a,
            total_volume_b=volume.volume_b,
            trade_count=volume.trade_count,
            unique_traders=volume.unique_trader_count,
            recent_trades=volume.recent_trades,
        )

        self._cache.put(summary.battle_id, state)
        await self._offer_to_sink(state)
        return BattleScanResult(ScanStatus.FOUND, state=state)

    @staticmethod
    def _with_fallback_volume(state: BattleState) -> BattleState:
        summary = state.summary
        if summary.has_cached_stats:
            return replace(
                state,
                volume_status=VolumeStatus.CACHED,
                total_volume_a=summary.total_volume_a,
                total_volume_b=summary.total_volume_b,
                trade_count=summary.trade_count or 0,
                unique_traders=summary.unique_traders or 0,
                recent_trades=summary.recent_trades,
            )
        return replace(state, volume_status=VolumeStatus.UNAVAILABLE)

    async def _offer_to_sink(self, state: BattleState) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.save_battle_stats(state)
        except Exception as e:
            logger.warning("Failed to persist stats for battle %s: %s", state.battle_id, e)
