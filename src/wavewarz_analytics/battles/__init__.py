"""Battle analytics - snapshots, volume reconstruction, settlement and rankings."""

from wavewarz_analytics.battles.leaderboard import (
    ArtistLeaderboardEntry,
    PlatformStats,
    TopBattle,
    build_artist_leaderboard,
    compute_platform_stats,
    rank_top_battles,
)
from wavewarz_analytics.battles.models import (
    BattleState,
    BattleSummary,
    RecentTrade,
    Side,
    SnapshotSource,
    TradeSide,
    TradeType,
    VolumeStatus,
)
from wavewarz_analytics.battles.settlement import (
    SettlementError,
    SettlementNotReadyError,
    SettlementStats,
    SettlementTieError,
    compute_settlement,
    determine_winner,
)
from wavewarz_analytics.battles.snapshot import (
    BattleScanResult,
    BattleSnapshotAssembler,
    BattleStatsSink,
    ScanStatus,
    SnapshotCache,
)
from wavewarz_analytics.battles.volume import (
    PartialReconstructionError,
    VolumeStats,
    reconstruct_volume,
    split_volume_by_tvl,
)

__all__ = [
    "ArtistLeaderboardEntry",
    "BattleScanResult",
    "BattleSnapshotAssembler",
    "BattleState",
    "BattleStatsSink",
    "BattleSummary",
    "PartialReconstructionError",
    "PlatformStats",
    "RecentTrade",
    "ScanStatus",
    "SettlementError",
    "SettlementNotReadyError",
    "SettlementStats",
    "SettlementTieError",
    "Side",
    "SnapshotCache",
    "SnapshotSource",
    "TopBattle",
    "TradeSide",
    "TradeType",
    "VolumeStats",
    "VolumeStatus",
    "build_artist_leaderboard",
    "compute_platform_stats",
    "compute_settlement",
    "determine_winner",
    "rank_top_battles",
    "reconstruct_volume",
    "split_volume_by_tvl",
]
