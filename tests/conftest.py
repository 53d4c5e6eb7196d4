"""Pytest configuration and fixtures."""

from __future__ import annotations

import struct
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
from solders.pubkey import Pubkey

from wavewarz_analytics.battles.models import BattleSummary, Side
from wavewarz_analytics.chain.decoder import BATTLE_ACCOUNT_SIZE
from wavewarz_analytics.chain.models import AddressTransaction, NativeTransfer

LAMPORTS = 1_000_000_000
BATTLE_CREATED_AT = datetime(2026, 3, 1, 20, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for cache and freshness tests."""

    def __init__(self, start: datetime = BATTLE_CREATED_AT) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pubkey() -> Callable[[int], str]:
    """Deterministic base58 address from a small integer."""

    def _make(n: int) -> str:
        return str(Pubkey.from_bytes(bytes([n % 256]) * 32))

    return _make


@pytest.fixture
def make_summary() -> Callable[..., BattleSummary]:
    def _make(battle_id: int = 1001, **overrides: Any) -> BattleSummary:
        values: dict[str, Any] = {
            "id": f"battle-{battle_id}",
            "battle_id": battle_id,
            "created_at": BATTLE_CREATED_AT,
            "side_a": Side(name="Nova", wallet="ArtistAWallet1111111111111111111111111111111"),
            "side_b": Side(name="Echo", wallet="ArtistBWallet1111111111111111111111111111111"),
            "battle_duration_seconds": 1200,
            "image_url": "https://example.com/battle.png",
        }
        values.update(overrides)
        return BattleSummary(**values)

    return _make


@pytest.fixture
def make_tx() -> Callable[..., AddressTransaction]:
    def _make(
        signature: str,
        transfers: list[tuple[str, str, Decimal | int | str]] | None = None,
        *,
        timestamp: datetime = BATTLE_CREATED_AT,
        program_ids: tuple[str, ...] = (),
    ) -> AddressTransaction:
        return AddressTransaction(
            signature=signature,
            timestamp=timestamp,
            native_transfers=tuple(
                NativeTransfer(
                    from_address=src,
                    to_address=dst,
                    lamports=int(Decimal(str(sol)) * LAMPORTS),
                )
                for src, dst, sol in transfers or []
            ),
            program_ids=program_ids,
        )

    return _make


@pytest.fixture
def battle_account_bytes() -> Callable[..., bytes]:
    """Build a raw battle account buffer field by field at its byte offsets."""

    def _make(
        *,
        battle_id: int = 1001,
        start: int = int(BATTLE_CREATED_AT.timestamp()),
        end: int = int((BATTLE_CREATED_AT + timedelta(minutes=20)).timestamp()),
        wallets: tuple[bytes, bytes, bytes, bytes, bytes] = (
            b"\x01" * 32,
            b"\x02" * 32,
            b"\x03" * 32,
            b"\x04" * 32,
            b"\x05" * 32,
        ),
        supply_a: int = 0,
        supply_b: int = 0,
        balance_a_lamports: int = 0,
        balance_b_lamports: int = 0,
        winner_is_a: int = 0,
        winner_decided: int = 0,
        is_active: int = 1,
        total_distribution: int = 0,
        extra: bytes = b"",
    ) -> bytes:
        buf = bytearray(BATTLE_ACCOUNT_SIZE)
        buf[0:8] = b"BATTLEAC"
        struct.pack_into("<Q", buf, 8, battle_id)
        struct.pack_into("<q", buf, 20, start)
        struct.pack_into("<q", buf, 28, end)
        for i, key in enumerate(wallets):
            buf[36 + 32 * i : 68 + 32 * i] = key
        struct.pack_into("<QQQQ", buf, 196, supply_a, supply_b, balance_a_lamports, balance_b_lamports)
        buf[244] = winner_is_a
        buf[245] = winner_decided
        buf[247] = 1
        buf[248] = is_active
        struct.pack_into("<Q", buf, 249, total_distribution)
        return bytes(buf) + extra

    return _make
