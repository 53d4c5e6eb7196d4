"""Trader leaderboard built from each battle's own (bounded) history."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from wavewarz_analytics.chain.addresses import derive_battle_addresses
from wavewarz_analytics.chain.client import ChainClientError
from wavewarz_analytics.config import DEFAULT_PROGRAM_ID
from wavewarz_analytics.traders.models import (
    BattleOutcome,
    TraderLeaderboardEntry,
    classify_outcome,
)

if TYPE_CHECKING:
    from wavewarz_analytics.battles.models import BattleSummary
    from wavewarz_analytics.chain.client import SolanaClient

logger = logging.getLogger(__name__)

LEADERBOARD_PAGE_SIZE = 50
LEADERBOARD_MAX_TRANSACTIONS = 50


@dataclass(frozen=True)
class TraderLeaderboard:
    entries: tuple[TraderLeaderboardEntry, ...]
    failed_battle_ids: tuple[str, ...] = field(default_factory=tuple)


async def _battle_flows(
    client: SolanaClient,
    summary: BattleSummary,
    *,
    program_id: str,
    page_size: int,
    max_transactions: int,
) -> dict[str, list[Decimal]]:
    """Per-trader [invested, payout] for one battle."""
    addresses = derive_battle_addresses(summary.battle_id, program_id)
    battle_accounts = {addresses.battle, addresses.vault}
    flows: dict[str, list[Decimal]] = defaultdict(lambda: [Decimal(0), Decimal(0)])

    before: str | None = None
    fetched = 0
    while fetched < max_transactions:
        limit = min(page_size, max_transactions - fetched)
        page = await client.get_address_transactions(addresses.battle, limit=limit, before=before)
        if not page:
            break
        for tx in page:
            for transfer in tx.native_transfers:
                if transfer.to_address in battle_accounts and transfer.from_address not in battle_accounts:
                    flows[transfer.from_address][0] += transfer.amount_sol
                elif transfer.from_address in battle_accounts and transfer.to_address not in battle_accounts:
                    flows[transfer.to_address][1] += transfer.amount_sol
        fetched += len(page)
        before = page[-1].signature
        if len(page) < limit:
            break
    return flows


async def build_trader_leaderboard(
    client: SolanaClient,
    battles: Iterable[BattleSummary],
    *,
    program_id: str = DEFAULT_PROGRAM_ID,
    page_size: int = LEADERBOARD_PAGE_SIZE,
    max_transactions: int = LEADERBOARD_MAX_TRANSACTIONS,
) -> TraderLeaderboard:
    """Rank traders by net P&L across the given battles.

    Battles are scanned one after another. A battle whose history cannot be
    read is recorded in `failed_battle_ids` and excluded from the totals.
    """
    invested: dict[str, Decimal] = defaultdict(Decimal)
    payout: dict[str, Decimal] = defaultdict(Decimal)
    battle_counts: dict[str, int] = defaultdict(int)
    wins: dict[str, int] = defaultdict(int)
    losses: dict[str, int] = defaultdict(int)
    failed: list[str] = []

    for summary in battles:
        try:
            flows = await _battle_flows(
                client,
                summary,
                program_id=program_id,
                page_size=page_size,
                max_transactions=max_transactions,
            )
        except ChainClientError as e:
            logger.warning("Skipping battle %s in trader leaderboard: %s", summary.id, e)
            failed.append(summary.id)
            continue

        for trader, (battle_invested, battle_payout) in flows.items():
            if not trader:
                continue
            invested[trader] += battle_invested
            payout[trader] += battle_payout
            battle_counts[trader] += 1
            outcome = classify_outcome(battle_invested, battle_payout)
            if outcome is BattleOutcome.WIN:
                wins[trader] += 1
            elif outcome is BattleOutcome.LOSS:
                losses[trader] += 1

    entries = [
        TraderLeaderboardEntry(
            wallet=trader,
            total_invested=invested[trader],
            total_payout=payout[trader],
            battles_participated=battle_counts[trader],
            wins=wins[trader],
            losses=losses[trader],
        )
        for trader in battle_counts
    ]
    entries.sort(key=lambda e: e.net_pnl, reverse=True)
    logger.info(
        "Trader leaderboard: %d traders, %d battle(s) failed", len(entries), len(failed)
    )
    return TraderLeaderboard(entries=tuple(entries), failed_battle_ids=tuple(failed))
