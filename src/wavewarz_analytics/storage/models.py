"""SQLAlchemy models for persistent storage.

This module defines the schema for the battle registry (metadata plus the
last scanned aggregates) and the materialized trader leaderboard.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class BattleModel(Base):
    """A registered battle and the aggregates of its last successful scan."""

    __tablename__ = "battles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    battle_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    battle_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    winner_decided: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    stream_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_community_battle: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_test_battle: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    artist_a_name: Mapped[str] = mapped_column(String(255), nullable=False)
    artist_a_wallet: Mapped[str] = mapped_column(String(44), nullable=False)
    artist_a_color: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    artist_a_avatar: Mapped[str] = mapped_column(Text, nullable=False, default="")
    artist_a_twitter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    artist_a_music_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    artist_a_mint: Mapped[str | None] = mapped_column(String(44), nullable=True)

    artist_b_name: Mapped[str] = mapped_column(String(255), nullable=False)
    artist_b_wallet: Mapped[str] = mapped_column(String(44), nullable=False)
    artist_b_color: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    artist_b_avatar: Mapped[str] = mapped_column(Text, nullable=False, default="")
    artist_b_twitter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    artist_b_music_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    artist_b_mint: Mapped[str | None] = mapped_column(String(44), nullable=True)

    # Aggregates written back by scans (NULL until the first scan).
    artist_a_pool: Mapped[Decimal | None] = mapped_column(Numeric(30, 9), nullable=True)
    artist_b_pool: Mapped[Decimal | None] = mapped_column(Numeric(30, 9), nullable=True)
    total_volume_a: Mapped[Decimal | None] = mapped_column(Numeric(30, 9), nullable=True)
    total_volume_b: Mapped[Decimal | None] = mapped_column(Numeric(30, 9), nullable=True)
    trade_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    unique_traders: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recent_trades: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    last_scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_battles_created_at", "created_at"),
        Index("idx_battles_last_scanned_at", "last_scanned_at"),
        Index("idx_battles_artist_a_wallet", "artist_a_wallet"),
        Index("idx_battles_artist_b_wallet", "artist_b_wallet"),
    )


class TraderLeaderboardModel(Base):
    """Materialized trader leaderboard row."""

    __tablename__ = "trader_leaderboard"

    wallet: Mapped[str] = mapped_column(String(44), primary_key=True)
    total_invested: Mapped[Decimal] = mapped_column(Numeric(30, 9), nullable=False)
    total_payout: Mapped[Decimal] = mapped_column(Numeric(30, 9), nullable=False)
    net_pnl: Mapped[Decimal] = mapped_column(Numeric(30, 9), nullable=False)
    roi: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    battles_participated: Mapped[int] = mapped_column(Integer, nullable=False)
    wins: Mapped[int] = mapped_column(Integer, nullable=False)
    losses: Mapped[int] = mapped_column(Integer, nullable=False)
    win_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("idx_trader_leaderboard_net_pnl", "net_pnl"),)
