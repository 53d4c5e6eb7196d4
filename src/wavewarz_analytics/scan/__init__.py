"""Batch jobs - stale battle rescans and leaderboard refresh."""

from wavewarz_analytics.scan.runner import (
    BattleScanReport,
    refresh_trader_leaderboard,
    run_battle_scan,
    run_trader_leaderboard_refresh,
    scan_battles,
)

__all__ = [
    "BattleScanReport",
    "refresh_trader_leaderboard",
    "run_battle_scan",
    "run_trader_leaderboard_refresh",
    "scan_battles",
]
