"""Battle registry and trader leaderboard.

Revision ID: 001_battles
Revises:
Create Date: 2026-10-17 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_battles"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _side_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_name", sa.String(255), nullable=False),
        sa.Column(f"{prefix}_wallet", sa.String(44), nullable=False),
        sa.Column(f"{prefix}_color", sa.String(32), nullable=False),
        sa.Column(f"{prefix}_avatar", sa.Text(), nullable=False),
        sa.Column(f"{prefix}_twitter", sa.String(255), nullable=True),
        sa.Column(f"{prefix}_music_link", sa.Text(), nullable=True),
        sa.Column(f"{prefix}_mint", sa.String(44), nullable=True),
    ]


def upgrade() -> None:
    # Battle registry (metadata + last scanned aggregates)
    op.create_table(
        "battles",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("battle_id", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("battle_duration", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("winner_decided", sa.Boolean(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("stream_link", sa.Text(), nullable=True),
        sa.Column("is_community_battle", sa.Boolean(), nullable=False),
        sa.Column("is_test_battle", sa.Boolean(), nullable=False),
        *_side_columns("artist_a"),
        *_side_columns("artist_b"),
        sa.Column("artist_a_pool", sa.Numeric(30, 9), nullable=True),
        sa.Column("artist_b_pool", sa.Numeric(30, 9), nullable=True),
        sa.Column("total_volume_a", sa.Numeric(30, 9), nullable=True),
        sa.Column("total_volume_b", sa.Numeric(30, 9), nullable=True),
        sa.Column("trade_count", sa.Integer(), nullable=True),
        sa.Column("unique_traders", sa.Integer(), nullable=True),
        sa.Column("recent_trades", sa.JSON(), nullable=True),
        sa.Column("last_scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("battle_id"),
    )
    op.create_index("idx_battles_created_at", "battles", ["created_at"])
    op.create_index("idx_battles_last_scanned_at", "battles", ["last_scanned_at"])
    op.create_index("idx_battles_artist_a_wallet", "battles", ["artist_a_wallet"])
    op.create_index("idx_battles_artist_b_wallet", "battles", ["artist_b_wallet"])

    # Materialized trader leaderboard
    op.create_table(
        "trader_leaderboard",
        sa.Column("wallet", sa.String(44), nullable=False),
        sa.Column("total_invested", sa.Numeric(30, 9), nullable=False),
        sa.Column("total_payout", sa.Numeric(30, 9), nullable=False),
        sa.Column("net_pnl", sa.Numeric(30, 9), nullable=False),
        sa.Column("roi", sa.Numeric(18, 6), nullable=False),
        sa.Column("battles_participated", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("win_rate", sa.Numeric(7, 4), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("wallet"),
    )
    op.create_index("idx_trader_leaderboard_net_pnl", "trader_leaderboard", ["net_pnl"])


def downgrade() -> None:
    op.drop_index("idx_trader_leaderboard_net_pnl", table_name="trader_leaderboard")
    op.drop_table("trader_leaderboard")

    op.drop_index("idx_battles_artist_b_wallet", table_name="battles")
    op.drop_index("idx_battles_artist_a_wallet", table_name="battles")
    op.drop_index("idx_battles_last_scanned_at", table_name="battles")
    op.drop_index("idx_battles_created_at", table_name="battles")
    op.drop_table("battles")
