"""Tests for the artist leaderboard and top-battle ranking."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from wavewarz_analytics.battles.leaderboard import (
    build_artist_leaderboard,
    compute_platform_stats,
    rank_top_battles,
)
from wavewarz_analytics.battles.models import BattleState, Side, SnapshotSource, VolumeStatus

NOVA = Side(name="Nova", wallet="NovaWallet")
ECHO = Side(name="Echo", wallet="EchoWallet")
PULSE = Side(name="Pulse", wallet="PulseWallet")


@pytest.fixture
def make_state(make_summary):
    def _make(
        battle_id: int,
        side_a: Side,
        side_b: Side,
        balance_a: str,
        balance_b: str,
        *,
        volume_a: str = "0",
        volume_b: str = "0",
        is_ended: bool = True,
    ) -> BattleState:
        summary = make_summary(battle_id, side_a=side_a, side_b=side_b)
        return BattleState(
            summary=summary,
            battle_address=f"B{battle_id}",
            vault_address=f"V{battle_id}",
            start_time=summary.created_at,
            end_time=summary.created_at + timedelta(minutes=20),
            is_ended=is_ended,
            artist_a_sol_balance=Decimal(balance_a),
            artist_b_sol_balance=Decimal(balance_b),
            source=SnapshotSource.CHAIN,
            volume_status=VolumeStatus.COMPLETE,
            scanned_at=summary.created_at,
            total_volume_a=Decimal(volume_a),
            total_volume_b=Decimal(volume_b),
        )

    return _make


class TestArtistLeaderboard:
    def test_aggregates_across_battles(self, make_state) -> None:
        states = [
            make_state(1, NOVA, ECHO, "120", "80", volume_a="300", volume_b="100"),
            make_state(2, ECHO, NOVA, "50", "10", volume_a="20", volume_b="40"),
        ]
        board = build_artist_leaderboard(states)
        by_wallet = {e.wallet: e for e in board}

        nova = by_wallet["NovaWallet"]
        # battle 1: fees 3 + winner 4; battle 2: fees 0.4 + loser 0.2
        assert nova.fee_earnings == Decimal("3.4")
        assert nova.settlement_earnings == Decimal("4.2")
        assert nova.total_earnings == Decimal("7.6")
        assert nova.battles_participated == 2
        assert (nova.wins, nova.losses) == (1, 1)
        assert nova.win_rate == 50.0
        assert nova.volume_generated == Decimal(340)
        assert nova.avg_volume_per_battle == Decimal(170)
        assert nova.best_battle_earnings == Decimal(7)
        assert nova.best_battle_name == "Nova vs Echo"

        echo = by_wallet["EchoWallet"]
        # battle 1: fees 1 + loser 1.6; battle 2: fees 0.2 + winner 0.5
        assert echo.total_earnings == Decimal("3.3")
        assert (echo.wins, echo.losses) == (1, 1)

        assert board[0].wallet == "NovaWallet"

    def test_tie_counts_participation_only(self, make_state) -> None:
        board = build_artist_leaderboard([make_state(1, NOVA, PULSE, "5", "5", volume_a="100")])
        nova = next(e for e in board if e.wallet == "NovaWallet")
        assert nova.battles_participated == 1
        assert (nova.wins, nova.losses) == (0, 0)
        assert nova.win_rate == 0.0
        assert nova.fee_earnings == Decimal(1)
        assert nova.settlement_earnings == Decimal(0)

    def test_live_battle_earns_fees_only(self, make_state) -> None:
        board = build_artist_leaderboard(
            [make_state(1, NOVA, ECHO, "9", "1", volume_a="50", is_ended=False)]
        )
        nova = next(e for e in board if e.wallet == "NovaWallet")
        assert nova.fee_earnings == Decimal("0.5")
        assert nova.settlement_earnings == Decimal(0)
        assert nova.wins == 0

    def test_empty(self) -> None:
        assert build_artist_leaderboard([]) == []


class TestRankTopBattles:
    def test_orders_by_tvl_and_skips_live(self, make_state) -> None:
        states = [
            make_state(1, NOVA, ECHO, "10", "5"),
            make_state(2, ECHO, PULSE, "40", "60"),
            make_state(3, PULSE, NOVA, "500", "500", is_ended=False),
            make_state(4, NOVA, PULSE, "7", "7"),
        ]
        top = rank_top_battles(states, limit=2)

        assert [b.state.battle_id for b in top] == [2, 1]
        assert top[0].winner_name == "Pulse"
        assert top[0].win_margin == Decimal(20)
        assert top[0].tvl == Decimal(100)

    def test_tie_has_no_winner(self, make_state) -> None:
        top = rank_top_battles([make_state(4, NOVA, PULSE, "7", "7")])
        assert top[0].winner_name is None
        assert top[0].win_margin == Decimal(0)


class TestPlatformStats:
    def test_totals_and_records(self, make_state) -> None:
        first = replace(
            make_state(1, NOVA, ECHO, "30", "10", volume_a="6", volume_b="2"),
            trade_count=4,
            unique_traders=3,
        )
        second = make_state(2, ECHO, PULSE, "5", "5", volume_a="1", volume_b="1", is_ended=False)
        second = replace(
            second,
            summary=replace(second.summary, created_at=second.summary.created_at + timedelta(days=1)),
            trade_count=2,
            unique_traders=2,
        )

        stats = compute_platform_stats([first, second])

        assert (stats.total_battles, stats.active_battles, stats.completed_battles) == (2, 1, 1)
        assert stats.total_volume == Decimal(10)
        assert stats.total_pool == Decimal(50)
        assert stats.avg_volume_per_battle == Decimal(5)
        assert stats.avg_pool_per_battle == Decimal(25)
        assert stats.total_trade_count == 6
        assert stats.total_unique_traders == 5
        assert stats.total_artists == 3
        assert (stats.largest_battle_id, stats.largest_battle_volume) == (1, Decimal(8))
        assert [s.battle_id for s in stats.recent_battles] == [2, 1]

    def test_empty(self) -> None:
        stats = compute_platform_stats([])
        assert stats.total_battles == 0
        assert stats.avg_volume_per_battle == Decimal(0)
        assert stats.largest_battle_id is None
