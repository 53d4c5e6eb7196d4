"""Trading-volume reconstruction from a battle's transaction history.

The history API only exposes native SOL transfers, so volume is observed as
SOL moving in and out of the battle/vault accounts. Two approximations apply:

- The scan is bounded (`BATTLE_MAX_TRANSACTIONS`); high-activity battles
  undercount older trades and report `truncated=True`.
- Transfers don't say which side's token was traded, so the total is split
  between sides in proportion to final TVL (`split_volume_by_tvl`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from wavewarz_analytics.battles.models import RecentTrade, TradeSide, TradeType
from wavewarz_analytics.chain.client import ChainClientError

if TYPE_CHECKING:
    from wavewarz_analytics.chain.client import SolanaClient

logger = logging.getLogger(__name__)

BATTLE_PAGE_SIZE = 50
BATTLE_MAX_TRANSACTIONS = 100
MAX_RECENT_TRADES = 20


class PartialReconstructionError(Exception):
    """Raised when history paging fails before the scan completed."""

    def __init__(self, message: str, *, pages_fetched: int) -> None:
        super().__init__(message)
        self.pages_fetched = pages_fetched


@dataclass(frozen=True)
class VolumeStats:
    volume_a: Decimal
    volume_b: Decimal
    trade_count: int
    unique_traders: frozenset[str]
    recent_trades: tuple[RecentTrade, ...]
    transactions_scanned: int
    truncated: bool = False
    total_volume: Decimal = field(default=Decimal(0))

    @property
    def unique_trader_count(self) -> int:
        return len(self.unique_traders)


def split_volume_by_tvl(total: Decimal, tvl_a: Decimal, tvl_b: Decimal) -> tuple[Decimal, Decimal]:
    """Attribute a running volume total to sides A and B by final TVL ratio.

    This is an approximation: it assumes trading activity mirrors the final
    pool sizes. With no TVL on either side the whole total is attributed to B.
    `volume_a + volume_b == total` always holds exactly.
    """
    if tvl_a < 0 or tvl_b < 0:
        raise ValueError("TVL cannot be negative")
    combined = tvl_a + tvl_b
    if combined == 0:
        volume_a = Decimal(0)
    else:
        volume_a = total * tvl_a / combined
    return volume_a, total - volume_a


async def reconstruct_volume(
    client: SolanaClient,
    battle_address: str,
    vault_address: str,
    tvl_a: Decimal,
    tvl_b: Decimal,
    *,
    page_size: int = BATTLE_PAGE_SIZE,
    max_transactions: int = BATTLE_MAX_TRANSACTIONS,
) -> VolumeStats:
    """Page backward through a battle's history and accumulate trading activity.

    A transfer into the battle or vault account is a BUY by its sender; one
    out of either is a SELL to its receiver. Every qualifying transfer counts
    as one trade.

    Raises:
        PartialReconstructionError: If any page fails (after client retries).
    """
    battle_accounts = {battle_address, vault_address}
    running_total = Decimal(0)
    trade_count = 0
    traders: set[str] = set()
    recent: list[RecentTrade] = []

    before: str | None = None
    fetched = 0
    pages = 0
    truncated = False

    while fetched < max_transactions:
        limit = min(page_size, max_transactions - fetched)
        try:
            page = await client.get_address_transactions(battle_address, limit=limit, before=before)
        except ChainClientError as e:
            raise PartialReconstructionError(
                f"History scan of {battle_address} failed after {pages} page(s): {e}",
                pages_fetched=pages,
            ) from e
        pages += 1
        if not page:
            break

        for tx in page:
            for transfer in tx.native_transfers:
                inbound = transfer.to_address in battle_accounts
                outbound = transfer.from_address in battle_accounts
                if inbound == outbound:
                    # unrelated, or an internal battle <-> vault move
                    continue
                trader = transfer.from_address if inbound else transfer.to_address
                if not trader or transfer.lamports == 0:
                    continue

                amount = transfer.amount_sol
                running_total += amount
                trade_count += 1
                traders.add(trader)
                if len(recent) < MAX_RECENT_TRADES:
                    recent.append(
                        RecentTrade(
                            signature=tx.signature,
                            amount=amount,
                            type=TradeType.BUY if inbound else TradeType.SELL,
                            timestamp=tx.timestamp,
                            trader=trader,
                            side=TradeSide.UNKNOWN,
                        )
                    )

        fetched += len(page)
        before = page[-1].signature
        logger.debug("Scanned page %d of %s (%d txs)", pages, battle_address, len(page))
        if len(page) < limit:
            break
    else:
        truncated = True

    volume_a, volume_b = split_volume_by_tvl(running_total, tvl_a, tvl_b)
    logger.info(
        "Reconstructed %s: total=%s trades=%d traders=%d txs=%d%s",
        battle_address,
        running_total,
        trade_count,
        len(traders),
        fetched,
        " (capped)" if truncated else "",
    )
    return VolumeStats(
        volume_a=volume_a,
        volume_b=volume_b,
        trade_count=trade_count,
        unique_traders=frozenset(traders),
        recent_trades=tuple(recent),
        transactions_scanned=fetched,
        truncated=truncated,
        total_volume=running_total,
    )
