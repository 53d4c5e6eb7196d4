"""Binary decoding of the on-chain battle account.

The layout is fixed and little-endian. A buffer shorter than the layout is
rejected outright: it means the wrong account or an upgraded program, and a
zero-filled record would be indistinguishable from a fresh battle.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from solders.pubkey import Pubkey

from wavewarz_analytics.chain.models import lamports_to_sol

TOKEN_DECIMALS_DIVISOR = Decimal(1_000_000)

# discriminator, battle id, bumps, start, end, 5 pubkeys, 2 supplies,
# 2 SOL balances, internal pools, winner_is_a, winner_decided,
# transaction_state, is_initialized, is_active, total_distribution
_BATTLE_LAYOUT = struct.Struct("<8sQ4sqq32s32s32s32s32sQQQQ16sBBBBBQ")

BATTLE_ACCOUNT_SIZE = _BATTLE_LAYOUT.size  # 257


class BattleDecodeError(Exception):
    """Raised when account bytes do not match the battle layout."""


@dataclass(frozen=True)
class DecodedBattleAccount:
    """Typed view of a battle account."""

    battle_id: int
    start_time: datetime
    end_time: datetime
    artist_a_wallet: str
    artist_b_wallet: str
    treasury_wallet: str
    mint_a: str
    mint_b: str
    artist_a_supply: Decimal
    artist_b_supply: Decimal
    artist_a_sol_balance: Decimal
    artist_b_sol_balance: Decimal
    winner_is_a: bool
    winner_decided: bool
    is_active: bool
    is_ended: bool
    total_distribution: Decimal

    @property
    def start_time_ms(self) -> int:
        return int(self.start_time.timestamp()) * 1000

    @property
    def end_time_ms(self) -> int:
        return int(self.end_time.timestamp()) * 1000


def _to_datetime(seconds: int) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise BattleDecodeError(f"timestamp {seconds} is out of range") from e


def decode_battle_account(data: bytes, *, now: datetime | None = None) -> DecodedBattleAccount:
    """Decode raw battle account bytes.

    Args:
        data: Raw account data (trailing bytes beyond the layout are ignored).
        now: Reference time for `is_ended`; defaults to the current UTC time.

    Returns:
        The decoded account.

    Raises:
        BattleDecodeError: If `data` is shorter than the layout or malformed.
    """
    if len(data) < BATTLE_ACCOUNT_SIZE:
        raise BattleDecodeError(
            f"battle account is {len(data)} bytes, expected at least {BATTLE_ACCOUNT_SIZE}"
        )

    (
        _discriminator,
        battle_id,
        _bumps,
        start_seconds,
        end_seconds,
        wallet_a,
        wallet_b,
        treasury,
        mint_a,
        mint_b,
        supply_a,
        supply_b,
        balance_a,
        balance_b,
        _internal_pools,
        winner_is_a,
        winner_decided,
        _transaction_state,
        _is_initialized,
        is_active,
        total_distribution,
    ) = _BATTLE_LAYOUT.unpack_from(data, 0)

    start_time = _to_datetime(start_seconds)
    end_time = _to_datetime(end_seconds)
    reference = now or datetime.now(UTC)
    active = is_active == 1

    return DecodedBattleAccount(
        battle_id=battle_id,
        start_time=start_time,
        end_time=end_time,
        artist_a_wallet=str(Pubkey.from_bytes(wallet_a)),
        artist_b_wallet=str(Pubkey.from_bytes(wallet_b)),
        treasury_wallet=str(Pubkey.from_bytes(treasury)),
        mint_a=str(Pubkey.from_bytes(mint_a)),
        mint_b=str(Pubkey.from_bytes(mint_b)),
        artist_a_supply=Decimal(supply_a) / TOKEN_DECIMALS_DIVISOR,
        artist_b_supply=Decimal(supply_b) / TOKEN_DECIMALS_DIVISOR,
        artist_a_sol_balance=lamports_to_sol(balance_a),
        artist_b_sol_balance=lamports_to_sol(balance_b),
        winner_is_a=winner_is_a == 1,
        winner_decided=winner_decided == 1,
        is_active=active,
        is_ended=(not active) or reference > end_time,
        total_distribution=lamports_to_sol(total_distribution),
    )

