"""Artist leaderboard, top-battle ranking and platform totals over battle states."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from wavewarz_analytics.battles.models import BattleState, BattleSummary, Side
from wavewarz_analytics.battles.settlement import (
    SettlementError,
    compute_settlement,
    compute_trading_fees,
)

logger = logging.getLogger(__name__)


@dataclass
class ArtistLeaderboardEntry:
    wallet: str
    name: str
    twitter: str | None = None
    music_link: str | None = None
    fee_earnings: Decimal = Decimal(0)
    settlement_earnings: Decimal = Decimal(0)
    battles_participated: int = 0
    wins: int = 0
    losses: int = 0
    volume_generated: Decimal = Decimal(0)
    best_battle_earnings: Decimal = Decimal(0)
    best_battle_name: str | None = None

    @property
    def total_earnings(self) -> Decimal:
        return self.fee_earnings + self.settlement_earnings

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return (self.wins / decided) * 100 if decided else 0.0

    @property
    def avg_volume_per_battle(self) -> Decimal:
        if not self.battles_participated:
            return Decimal(0)
        return self.volume_generated / self.battles_participated


@dataclass(frozen=True)
class TopBattle:
    state: BattleState
    winner_name: str | None
    win_margin: Decimal

    @property
    def tvl(self) -> Decimal:
        return self.state.tvl


def _battle_name(state: BattleState) -> str:
    return f"{state.summary.side_a.name} vs {state.summary.side_b.name}"


def build_artist_leaderboard(states: Iterable[BattleState]) -> list[ArtistLeaderboardEntry]:
    """Aggregate per-artist earnings and results, highest total earnings first.

    Trading fees accrue for every battle. Settlement earnings and win/loss
    only count for ended battles with a decidable winner; a tie without an
    on-chain decision counts as a participation only.
    """
    entries: dict[str, ArtistLeaderboardEntry] = {}

    def entry_for(side: Side) -> ArtistLeaderboardEntry:
        entry = entries.get(side.wallet)
        if entry is None:
            entry = ArtistLeaderboardEntry(
                wallet=side.wallet,
                name=side.name,
                twitter=side.twitter,
                music_link=side.music_link,
            )
            entries[side.wallet] = entry
        return entry

    for state in states:
        summary = state.summary
        fees_a, fees_b, _ = compute_trading_fees(state.total_volume_a, state.total_volume_b)
        settlement_a = settlement_b = Decimal(0)
        winner: str | None = None

        if state.is_ended:
            try:
                settlement = compute_settlement(state)
            except SettlementError as e:
                logger.info("No settlement result for battle %s: %s", state.battle_id, e)
            else:
                winner = settlement.winner_id
                settlement_a = settlement.artist_a_settlement
                settlement_b = settlement.artist_b_settlement

        for side, label, fees, settled, volume in (
            (summary.side_a, "A", fees_a, settlement_a, state.total_volume_a),
            (summary.side_b, "B", fees_b, settlement_b, state.total_volume_b),
        ):
            if not side.wallet:
                continue
            entry = entry_for(side)
            entry.battles_participated += 1
            entry.fee_earnings += fees
            entry.settlement_earnings += settled
            entry.volume_generated += volume
            if winner is not None:
                if winner == label:
                    entry.wins += 1
                else:
                    entry.losses += 1
            earned = fees + settled
            if earned > entry.best_battle_earnings:
                entry.best_battle_earnings = earned
                entry.best_battle_name = _battle_name(state)

    return sorted(entries.values(), key=lambda e: e.total_earnings, reverse=True)


def rank_top_battles(states: Iterable[BattleState], limit: int = 10) -> list[TopBattle]:
    """Ended battles ranked by final TVL, largest first."""
    ranked: list[TopBattle] = []
    for state in states:
        if not state.is_ended:
            continue
        balance_a, balance_b = state.artist_a_sol_balance, state.artist_b_sol_balance
        if balance_a > balance_b:
            winner_name: str | None = state.summary.side_a.name
        elif balance_b > balance_a:
            winner_name = state.summary.side_b.name
        else:
            winner_name = None
        ranked.append(TopBattle(state=state, winner_name=winner_name, win_margin=abs(balance_a - balance_b)))

    ranked.sort(key=lambda b: b.tvl, reverse=True)
    return ranked[:limit]


@dataclass(frozen=True)
class PlatformStats:
    """Platform-wide totals across a set of battles.

    `total_unique_traders` sums each battle's trader count, so a wallet
    trading in several battles is counted once per battle.
    """

    total_battles: int = 0
    active_battles: int = 0
    completed_battles: int = 0
    total_volume: Decimal = Decimal(0)
    total_pool: Decimal = Decimal(0)
    total_trade_count: int = 0
    total_unique_traders: int = 0
    total_artists: int = 0
    largest_battle_id: int | None = None
    largest_battle_volume: Decimal = Decimal(0)
    recent_battles: tuple[BattleSummary, ...] = field(default_factory=tuple)

    @property
    def avg_volume_per_battle(self) -> Decimal:
        return self.total_volume / self.total_battles if self.total_battles else Decimal(0)

    @property
    def avg_pool_per_battle(self) -> Decimal:
        return self.total_pool / self.total_battles if self.total_battles else Decimal(0)


def compute_platform_stats(states: Iterable[BattleState], recent_limit: int = 5) -> PlatformStats:
    """Aggregate battle counts, volume, pools and records over `states`."""
    states = list(states)
    artists: set[str] = set()
    total_volume = total_pool = largest_volume = Decimal(0)
    largest_id: int | None = None
    completed = trade_count = traders = 0

    for state in states:
        if state.is_ended:
            completed += 1
        volume = state.total_volume
        total_volume += volume
        total_pool += state.tvl
        trade_count += state.trade_count
        traders += state.unique_traders
        if volume > largest_volume:
            largest_volume, largest_id = volume, state.battle_id
        artists.update(w for w in (state.summary.side_a.wallet, state.summary.side_b.wallet) if w)

    recent = sorted((s.summary for s in states), key=lambda s: s.created_at, reverse=True)
    return PlatformStats(
        total_battles=len(states),
        active_battles=len(states) - completed,
        completed_battles=completed,
        total_volume=total_volume,
        total_pool=total_pool,
        total_trade_count=trade_count,
        total_unique_traders=traders,
        total_artists=len(artists),
        largest_battle_id=largest_id,
        largest_battle_volume=largest_volume,
        recent_battles=tuple(recent[:recent_limit]),
    )
