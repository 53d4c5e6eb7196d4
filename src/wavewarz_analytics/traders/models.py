"""Data models for trader portfolios and leaderboards."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

UNLISTED_PREFIX = "unlisted-"


class TraderTransactionType(str, Enum):
    INVEST = "INVEST"
    PAYOUT = "PAYOUT"


class BattleOutcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    PENDING = "PENDING"


def classify_outcome(invested: Decimal, payout: Decimal) -> BattleOutcome:
    """WIN on positive P&L; LOSS on negative P&L with some payout; else PENDING."""
    pnl = payout - invested
    if pnl > 0:
        return BattleOutcome.WIN
    if pnl < 0 and payout > 0:
        return BattleOutcome.LOSS
    return BattleOutcome.PENDING


@dataclass(frozen=True)
class TraderTransaction:
    signature: str
    type: TraderTransactionType
    amount: Decimal
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "type": self.type.value,
            "amount": str(self.amount),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TraderTransaction:
        return cls(
            signature=data["signature"],
            type=TraderTransactionType(data["type"]),
            amount=Decimal(data["amount"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class TraderBattleHistory:
    """A trader's activity grouped by battle.

    `battle_id` is the battle's registry id, or `unlisted-<counterparty>` for
    program transfers to an address no known battle derives to.
    """

    battle_id: str
    artist_a_name: str
    artist_b_name: str
    image_url: str
    date: datetime
    invested: Decimal = Decimal(0)
    payout: Decimal = Decimal(0)
    transactions: list[TraderTransaction] = field(default_factory=list)

    @property
    def pnl(self) -> Decimal:
        return self.payout - self.invested

    @property
    def outcome(self) -> BattleOutcome:
        return classify_outcome(self.invested, self.payout)

    @property
    def is_unlisted(self) -> bool:
        return self.battle_id.startswith(UNLISTED_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        return {
            "battle_id": self.battle_id,
            "artist_a_name": self.artist_a_name,
            "artist_b_name": self.artist_b_name,
            "image_url": self.image_url,
            "date": self.date.isoformat(),
            "invested": str(self.invested),
            "payout": str(self.payout),
            "transactions": [t.to_dict() for t in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TraderBattleHistory:
        return cls(
            battle_id=data["battle_id"],
            artist_a_name=data["artist_a_name"],
            artist_b_name=data["artist_b_name"],
            image_url=data["image_url"],
            date=datetime.fromisoformat(data["date"]),
            invested=Decimal(data["invested"]),
            payout=Decimal(data["payout"]),
            transactions=[TraderTransaction.from_dict(t) for t in data["transactions"]],
        )


@dataclass(frozen=True)
class TraderProfileStats:
    wallet: str
    total_invested: Decimal
    total_payout: Decimal
    battles_participated: int
    wins: int
    losses: int
    history: tuple[TraderBattleHistory, ...]
    computed_at: datetime
    history_truncated: bool = False

    @property
    def net_pnl(self) -> Decimal:
        return self.total_payout - self.total_invested

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return (self.wins / decided) * 100 if decided else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "total_invested": str(self.total_invested),
            "total_payout": str(self.total_payout),
            "battles_participated": self.battles_participated,
            "wins": self.wins,
            "losses": self.losses,
            "history": [h.to_dict() for h in self.history],
            "computed_at": self.computed_at.isoformat(),
            "history_truncated": self.history_truncated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TraderProfileStats:
        return cls(
            wallet=data["wallet"],
            total_invested=Decimal(data["total_invested"]),
            total_payout=Decimal(data["total_payout"]),
            battles_participated=int(data["battles_participated"]),
            wins=int(data["wins"]),
            losses=int(data["losses"]),
            history=tuple(TraderBattleHistory.from_dict(h) for h in data["history"]),
            computed_at=datetime.fromisoformat(data["computed_at"]),
            history_truncated=bool(data.get("history_truncated", False)),
        )


@dataclass(frozen=True)
class TraderLeaderboardEntry:
    wallet: str
    total_invested: Decimal
    total_payout: Decimal
    battles_participated: int
    wins: int
    losses: int

    @property
    def net_pnl(self) -> Decimal:
        return self.total_payout - self.total_invested

    @property
    def roi(self) -> Decimal:
        """Return on investment in percent (0 when nothing was invested)."""
        if self.total_invested == 0:
            return Decimal(0)
        return self.net_pnl / self.total_invested * 100

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return (self.wins / decided) * 100 if decided else 0.0
