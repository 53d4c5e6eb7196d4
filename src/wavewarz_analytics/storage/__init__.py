"""Storage layer - Database schemas and repositories."""

from wavewarz_analytics.storage.database import DatabaseManager, async_database_url
from wavewarz_analytics.storage.models import Base, BattleModel, TraderLeaderboardModel
from wavewarz_analytics.storage.repos import BattleRepository, TraderLeaderboardRepository
from wavewarz_analytics.storage.store import DatabaseBattleStore

__all__ = [
    "Base",
    "BattleModel",
    "BattleRepository",
    "DatabaseBattleStore",
    "DatabaseManager",
    "TraderLeaderboardModel",
    "TraderLeaderboardRepository",
    "async_database_url",
]
