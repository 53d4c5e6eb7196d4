"""Settlement and fee-distribution projection for finished battles.

Settlement is executed on-chain; this is a reporting projection of the fixed
schedule and may differ from the chain by rounding.

Loser-pool schedule:
- 40% winning traders (aggregate only; the pro-rata split is on-chain)
- 50% losing traders (retained)
- 5% winning artist
- 2% losing artist
- 3% platform

Continuous trading fees (outside the loser pool): 1% of each side's volume
to that side's artist, 0.5% of combined volume to the platform.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from wavewarz_analytics.battles.models import BattleState

WINNING_TRADERS_SHARE = Decimal("0.40")
LOSING_TRADERS_SHARE = Decimal("0.50")
WINNING_ARTIST_SHARE = Decimal("0.05")
LOSING_ARTIST_SHARE = Decimal("0.02")
PLATFORM_SETTLEMENT_SHARE = Decimal("0.03")

ARTIST_TRADING_FEE = Decimal("0.01")
PLATFORM_TRADING_FEE = Decimal("0.005")

WinnerId = Literal["A", "B"]


class SettlementError(Exception):
    """Base exception for settlement projection errors."""


class SettlementNotReadyError(SettlementError):
    """Raised when settlement is requested for a battle that has not ended."""


class SettlementTieError(SettlementError):
    """Raised on an exact balance tie the chain has not resolved."""


@dataclass(frozen=True)
class SettlementStats:
    winner_id: WinnerId
    win_margin: Decimal
    loser_pool_total: Decimal

    to_winning_traders: Decimal
    to_losing_traders: Decimal
    to_winning_artist: Decimal
    to_losing_artist: Decimal
    to_platform: Decimal

    artist_a_fees: Decimal
    artist_a_settlement: Decimal
    artist_a_earnings: Decimal

    artist_b_fees: Decimal
    artist_b_settlement: Decimal
    artist_b_earnings: Decimal

    platform_fees: Decimal
    platform_settlement: Decimal
    platform_earnings: Decimal

    @property
    def distributed_total(self) -> Decimal:
        return (
            self.to_winning_traders
            + self.to_losing_traders
            + self.to_winning_artist
            + self.to_losing_artist
            + self.to_platform
        )


def determine_winner(state: BattleState) -> WinnerId:
    """Side with the strictly greater final pool.

    On an exact tie the on-chain decision is used when the program has made
    one; otherwise SettlementTieError.
    """
    balance_a = state.artist_a_sol_balance
    balance_b = state.artist_b_sol_balance
    if balance_a > balance_b:
        return "A"
    if balance_b > balance_a:
        return "B"
    if state.winner_decided and state.winner_is_a is not None:
        return "A" if state.winner_is_a else "B"
    raise SettlementTieError(
        f"battle {state.battle_id} ended in an exact tie ({balance_a} SOL each) with no on-chain winner"
    )


def compute_trading_fees(volume_a: Decimal, volume_b: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """Return (artist A fees, artist B fees, platform fees) for the given volumes."""
    return (
        volume_a * ARTIST_TRADING_FEE,
        volume_b * ARTIST_TRADING_FEE,
        (volume_a + volume_b) * PLATFORM_TRADING_FEE,
    )


def compute_settlement(state: BattleState) -> SettlementStats:
    """Project the settlement breakdown of an ended battle.

    Raises:
        SettlementNotReadyError: If the battle has not ended.
        SettlementTieError: On an unresolved exact tie.
    """
    if not state.is_ended:
        raise SettlementNotReadyError(f"battle {state.battle_id} has not ended")

    winner = determine_winner(state)
    balance_a = state.artist_a_sol_balance
    balance_b = state.artist_b_sol_balance
    loser_pool = balance_b if winner == "A" else balance_a

    to_winning_artist = loser_pool * WINNING_ARTIST_SHARE
    to_losing_artist = loser_pool * LOSING_ARTIST_SHARE
    to_platform = loser_pool * PLATFORM_SETTLEMENT_SHARE

    artist_a_fees, artist_b_fees, platform_fees = compute_trading_fees(
        state.total_volume_a, state.total_volume_b
    )
    artist_a_settlement = to_winning_artist if winner == "A" else to_losing_artist
    artist_b_settlement = to_winning_artist if winner == "B" else to_losing_artist

    return SettlementStats(
        winner_id=winner,
        win_margin=abs(balance_a - balance_b),
        loser_pool_total=loser_pool,
        to_winning_traders=loser_pool * WINNING_TRADERS_SHARE,
        to_losing_traders=loser_pool * LOSING_TRADERS_SHARE,
        to_winning_artist=to_winning_artist,
        to_losing_artist=to_losing_artist,
        to_platform=to_platform,
        artist_a_fees=artist_a_fees,
        artist_a_settlement=artist_a_settlement,
        artist_a_earnings=artist_a_fees + artist_a_settlement,
        artist_b_fees=artist_b_fees,
        artist_b_settlement=artist_b_settlement,
        artist_b_earnings=artist_b_fees + artist_b_settlement,
        platform_fees=platform_fees,
        platform_settlement=to_platform,
        platform_earnings=platform_fees + to_platform,
    )
