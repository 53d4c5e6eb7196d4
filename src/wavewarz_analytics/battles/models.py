"""Data models for battles, their sides and reconstructed trading activity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any


class TradeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeSide(str, Enum):
    """Which side's token a trade touched (native transfers don't say)."""

    A = "A"
    B = "B"
    UNKNOWN = "Unknown"


class SnapshotSource(str, Enum):
    """Where a BattleState's on-chain fields came from."""

    CHAIN = "chain"
    CACHED_SUMMARY = "cached_summary"
    NOT_STARTED = "not_started"


class VolumeStatus(str, Enum):
    """Trust level of the volume/trade fields of a BattleState."""

    COMPLETE = "complete"
    CACHED = "cached"  # last-known-good aggregates from the persistence layer
    UNAVAILABLE = "unavailable"  # history scan failed and nothing was cached
    NOT_SCANNED = "not_scanned"  # no on-chain account to scan yet


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _optional_decimal(value: Any) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


@dataclass(frozen=True)
class Side:
    """One competitor of a battle."""

    name: str
    wallet: str
    color: str = ""
    avatar: str = ""
    twitter: str | None = None
    music_link: str | None = None
    mint: str | None = None


@dataclass(frozen=True)
class RecentTrade:
    """A qualifying native transfer, kept for display."""

    signature: str
    amount: Decimal
    type: TradeType
    timestamp: datetime
    trader: str
    side: TradeSide = TradeSide.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "amount": str(self.amount),
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "trader": self.trader,
            "side": self.side.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecentTrade:
        timestamp = _parse_datetime(data["timestamp"])
        if timestamp is None:
            raise ValueError("recent trade has no timestamp")
        return cls(
            signature=str(data["signature"]),
            amount=Decimal(str(data["amount"])),
            type=TradeType(data["type"]),
            timestamp=timestamp,
            trader=str(data["trader"]),
            side=TradeSide(data.get("side", TradeSide.UNKNOWN.value)),
        )


@dataclass(frozen=True)
class BattleSummary:
    """Battle metadata as supplied by the persistence layer.

    The optional aggregate fields are whatever the last scan stored; they are
    None when the battle has never been scanned.
    """

    id: str
    battle_id: int
    created_at: datetime
    side_a: Side
    side_b: Side
    battle_duration_seconds: int
    status: str = ""
    winner_decided: bool = False
    image_url: str = ""
    stream_link: str | None = None
    is_community_battle: bool = False
    is_test_battle: bool = False

    artist_a_sol_balance: Decimal | None = None
    artist_b_sol_balance: Decimal | None = None
    total_volume_a: Decimal | None = None
    total_volume_b: Decimal | None = None
    trade_count: int | None = None
    unique_traders: int | None = None
    recent_trades: tuple[RecentTrade, ...] = ()
    last_scanned_at: datetime | None = None

    @property
    def has_cached_stats(self) -> bool:
        return self.total_volume_a is not None and self.total_volume_b is not None

    @property
    def scheduled_end(self) -> datetime:
        return self.created_at + timedelta(seconds=self.battle_duration_seconds)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BattleSummary:
        """Create a BattleSummary from a camelCase registry/API record."""
        created_at = _parse_datetime(data["createdAt"])
        if created_at is None:
            raise ValueError("battle summary has no createdAt")

        def side(key: str) -> Side:
            raw = data[key]
            return Side(
                name=str(raw.get("name", "")),
                wallet=str(raw.get("wallet", "")),
                color=str(raw.get("color", "")),
                avatar=str(raw.get("avatar", "")),
                twitter=raw.get("twitter"),
                music_link=raw.get("musicLink"),
                mint=raw.get("mint"),
            )

        trade_count = data.get("tradeCount")
        unique_traders = data.get("uniqueTraders")
        return cls(
            id=str(data["id"]),
            battle_id=int(str(data["battleId"])),
            created_at=created_at,
            side_a=side("artistA"),
            side_b=side("artistB"),
            battle_duration_seconds=int(data.get("battleDuration") or 0),
            status=str(data.get("status") or ""),
            winner_decided=bool(data.get("winnerDecided", False)),
            image_url=str(data.get("imageUrl") or ""),
            stream_link=data.get("streamLink"),
            is_community_battle=bool(data.get("isCommunityBattle", False)),
            is_test_battle=bool(data.get("isTestBattle", False)),
            artist_a_sol_balance=_optional_decimal(data.get("artistASolBalance")),
            artist_b_sol_balance=_optional_decimal(data.get("artistBSolBalance")),
            total_volume_a=_optional_decimal(data.get("totalVolumeA")),
            total_volume_b=_optional_decimal(data.get("totalVolumeB")),
            trade_count=int(trade_count) if trade_count is not None else None,
            unique_traders=int(unique_traders) if unique_traders is not None else None,
            recent_trades=tuple(RecentTrade.from_dict(t) for t in data.get("recentTrades") or []),
            last_scanned_at=_parse_datetime(data.get("lastScannedAt")),
        )


@dataclass(frozen=True)
class BattleState:
    """Point-in-time state of a battle: summary + decoded account + reconstructed activity.

    `total_volume_a` / `total_volume_b` are a TVL-proportional split of the
    observed volume, not an exact per-side attribution.
    """

    summary: BattleSummary
    battle_address: str
    vault_address: str
    start_time: datetime
    end_time: datetime
    is_ended: bool
    artist_a_sol_balance: Decimal
    artist_b_sol_balance: Decimal
    source: SnapshotSource
    volume_status: VolumeStatus
    scanned_at: datetime
    artist_a_supply: Decimal = Decimal(0)
    artist_b_supply: Decimal = Decimal(0)
    winner_decided: bool = False
    winner_is_a: bool | None = None
    total_distribution: Decimal = Decimal(0)
    on_chain_wallet_a: str | None = None
    on_chain_wallet_b: str | None = None
    on_chain_mint_a: str | None = None
    on_chain_mint_b: str | None = None
    treasury_wallet: str | None = None
    total_volume_a: Decimal = Decimal(0)
    total_volume_b: Decimal = Decimal(0)
    trade_count: int = 0
    unique_traders: int = 0
    recent_trades: tuple[RecentTrade, ...] = field(default_factory=tuple)

    @property
    def id(self) -> str:
        return self.summary.id

    @property
    def battle_id(self) -> int:
        return self.summary.battle_id

    @property
    def tvl(self) -> Decimal:
        return self.artist_a_sol_balance + self.artist_b_sol_balance

    @property
    def total_volume(self) -> Decimal:
        return self.total_volume_a + self.total_volume_b

    @property
    def start_time_ms(self) -> int:
        return int(self.start_time.timestamp() * 1000)

    @property
    def end_time_ms(self) -> int:
        return int(self.end_time.timestamp() * 1000)
