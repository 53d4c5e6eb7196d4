"""Trader portfolio aggregation from a wallet's own transaction history.

Profiles are cached in Redis when a client is supplied; cache failures are
logged and never block a profile build. History failures are not papered
over: a page that cannot be fetched raises TraderHistoryError.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from redis.asyncio import Redis

from wavewarz_analytics.chain.addresses import derive_battle_addresses
from wavewarz_analytics.chain.client import ChainClientError
from wavewarz_analytics.config import DEFAULT_PROGRAM_ID
from wavewarz_analytics.traders.models import (
    UNLISTED_PREFIX,
    BattleOutcome,
    TraderBattleHistory,
    TraderProfileStats,
    TraderTransaction,
    TraderTransactionType,
)

if TYPE_CHECKING:
    from wavewarz_analytics.battles.models import BattleSummary
    from wavewarz_analytics.chain.client import SolanaClient
    from wavewarz_analytics.chain.models import AddressTransaction
    from wavewarz_analytics.config import Settings

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_PROFILE_CACHE_TTL = 300  # 5 minutes
TRADER_PAGE_SIZE = 100
TRADER_MAX_PAGES = 10


class TraderHistoryError(Exception):
    """Raised when a wallet's transaction history cannot be read."""


class TraderPortfolioAggregator:
    """Builds per-battle P&L profiles for trader wallets."""

    def __init__(
        self,
        client: SolanaClient,
        *,
        program_id: str = DEFAULT_PROGRAM_ID,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_PROFILE_CACHE_TTL,
        page_size: int = TRADER_PAGE_SIZE,
        max_pages: int = TRADER_MAX_PAGES,
    ) -> None:
        self._client = client
        self._program_id = program_id
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._page_size = page_size
        self._max_pages = max_pages
        self._cache_prefix = "trader_profile:"

    @classmethod
    def from_settings(
        cls,
        client: SolanaClient,
        settings: Settings,
        *,
        redis: Redis | None = None,
    ) -> TraderPortfolioAggregator:
        return cls(
            client,
            program_id=settings.solana.program_id,
            redis=redis,
            cache_ttl_seconds=settings.scan.trader_profile_cache_ttl_seconds,
            page_size=settings.scan.trader_page_size,
            max_pages=settings.scan.trader_max_pages,
        )

    def _cache_key(self, wallet: str) -> str:
        return f"{self._cache_prefix}{wallet}"

    async def _get_cached_profile(self, wallet: str) -> TraderProfileStats | None:
        if not self._redis:
            return None
        try:
            cached = await self._redis.get(self._cache_key(wallet))
            if cached is None:
                return None
            data = json.loads(cached if isinstance(cached, str) else cached.decode())
            return TraderProfileStats.from_dict(data)
        except Exception as e:
            logger.warning("Failed to read cached trader profile for %s: %s", wallet, e)
            return None

    async def _cache_profile(self, profile: TraderProfileStats) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(
                self._cache_key(profile.wallet),
                json.dumps(profile.to_dict()),
                ex=self._cache_ttl,
            )
        except Exception as e:
            logger.warning("Failed to cache trader profile for %s: %s", profile.wallet, e)

    async def build_profile(
        self,
        wallet: str,
        known_battles: Iterable[BattleSummary],
        *,
        force_refresh: bool = False,
    ) -> TraderProfileStats:
        """Build (or return the cached) profile of a trader wallet.

        Args:
            wallet: Trader wallet address.
            known_battles: Battles whose derived addresses identify investments.
            force_refresh: Skip the Redis cache read.

        Raises:
            TraderHistoryError: If a history page cannot be fetched.
        """
        if not force_refresh:
            cached = await self._get_cached_profile(wallet)
            if cached is not None:
                return cached

        transactions, truncated = await self._fetch_history(wallet)
        profile = self._aggregate(wallet, transactions, known_battles, truncated=truncated)
        await self._cache_profile(profile)
        return profile

    async def _fetch_history(self, wallet: str) -> tuple[list[AddressTransaction], bool]:
        transactions: list[AddressTransaction] = []
        before: str | None = None

        for page_number in range(self._max_pages):
            try:
                page = await self._client.get_address_transactions(
                    wallet, limit=self._page_size, before=before
                )
            except ChainClientError as e:
                raise TraderHistoryError(
                    f"History page {page_number + 1} of {wallet} could not be fetched: {e}"
                ) from e
            if not page:
                return transactions, False
            transactions.extend(page)
            before = page[-1].signature

        logger.info(
            "Trader history of %s capped at %d transactions", wallet, len(transactions)
        )
        return transactions, True

    def _aggregate(
        self,
        wallet: str,
        transactions: list[AddressTransaction],
        known_battles: Iterable[BattleSummary],
        *,
        truncated: bool,
    ) -> TraderProfileStats:
        by_address: dict[str, BattleSummary] = {}
        for summary in known_battles:
            addresses = derive_battle_addresses(summary.battle_id, self._program_id)
            by_address[addresses.battle] = summary
            by_address[addresses.vault] = summary

        history: dict[str, TraderBattleHistory] = {}
        total_invested = Decimal(0)
        total_payout = Decimal(0)

        for tx in transactions:
            involves_program = tx.involves_program(self._program_id)
            for transfer in tx.native_transfers:
                if transfer.from_address == wallet:
                    kind = TraderTransactionType.INVEST
                    counterparty = transfer.to_address
                elif transfer.to_address == wallet:
                    kind = TraderTransactionType.PAYOUT
                    counterparty = transfer.from_address
                else:
                    continue

                summary = by_address.get(counterparty)
                if summary is None and not involves_program:
                    continue

                amount = transfer.amount_sol
                if summary is not None:
                    key = summary.id
                    if key not in history:
                        history[key] = TraderBattleHistory(
                            battle_id=summary.id,
                            artist_a_name=summary.side_a.name,
                            artist_b_name=summary.side_b.name,
                            image_url=summary.image_url,
                            date=summary.created_at,
                        )
                else:
                    key = f"{UNLISTED_PREFIX}{counterparty}"
                    if key not in history:
                        history[key] = TraderBattleHistory(
                            battle_id=key,
                            artist_a_name="Unlisted Battle",
                            artist_b_name="Unknown Opponent",
                            image_url="",
                            date=tx.timestamp,
                        )

                entry = history[key]
                entry.transactions.append(
                    TraderTransaction(
                        signature=tx.signature, type=kind, amount=amount, timestamp=tx.timestamp
                    )
                )
                if kind is TraderTransactionType.INVEST:
                    entry.invested += amount
                    total_invested += amount
                else:
                    entry.payout += amount
                    total_payout += amount

        ordered = sorted(history.values(), key=lambda h: h.date, reverse=True)
        outcomes = [h.outcome for h in ordered]
        profile = TraderProfileStats(
            wallet=wallet,
            total_invested=total_invested,
            total_payout=total_payout,
            battles_participated=len(ordered),
            wins=outcomes.count(BattleOutcome.WIN),
            losses=outcomes.count(BattleOutcome.LOSS),
            history=tuple(ordered),
            computed_at=datetime.now(UTC),
            history_truncated=truncated,
        )
        logger.info(
            "Built profile for %s: battles=%d net=%s",
            wallet,
            profile.battles_participated,
            profile.net_pnl,
        )
        return profile
