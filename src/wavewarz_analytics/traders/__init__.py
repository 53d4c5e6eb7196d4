"""Trader analytics - wallet portfolios and the P&L leaderboard."""

from wavewarz_analytics.traders.leaderboard import TraderLeaderboard, build_trader_leaderboard
from wavewarz_analytics.traders.models import (
    BattleOutcome,
    TraderBattleHistory,
    TraderLeaderboardEntry,
    TraderProfileStats,
    TraderTransaction,
    TraderTransactionType,
    classify_outcome,
)
from wavewarz_analytics.traders.portfolio import TraderHistoryError, TraderPortfolioAggregator

__all__ = [
    "BattleOutcome",
    "TraderBattleHistory",
    "TraderHistoryError",
    "TraderLeaderboard",
    "TraderLeaderboardEntry",
    "TraderPortfolioAggregator",
    "TraderProfileStats",
    "TraderTransaction",
    "TraderTransactionType",
    "build_trader_leaderboard",
    "classify_outcome",
]
