"""Solana account and transaction-history client with retry and rate limiting.

This module provides the single HTTP seam of the analytics core:
- Raw account reads via JSON-RPC `getAccountInfo`
- Paged address transaction history via the enhanced transactions API
- Rate limiting to respect provider limits
- Retry logic with exponential backoff, applied to every call by one decorator
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from wavewarz_analytics.chain.models import AddressTransaction

if TYPE_CHECKING:
    from wavewarz_analytics.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default configuration
DEFAULT_MAX_ATTEMPTS = 6
DEFAULT_RETRY_BASE_DELAY = 2.0
DEFAULT_MAX_REQUESTS_PER_SECOND = 10.0
DEFAULT_REQUEST_TIMEOUT = 30.0

# JSON-RPC error code some providers use for rate limiting
RPC_RATE_LIMITED_CODE = -32429


class ChainClientError(Exception):
    """Base exception for chain client errors."""


class TransientNetworkError(ChainClientError):
    """Raised for retryable failures (HTTP 429/5xx, connection problems)."""


class RetryError(TransientNetworkError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy: `base_delay_seconds` doubled after each failure."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")


def with_retry(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Decorator for async methods adding retry with exponential backoff.

    The policy is read from the bound instance's `retry_policy` attribute so
    every decorated call site shares identical semantics. Only
    `TransientNetworkError` is retried; anything else propagates at once.

    Raises:
        RetryError: If every attempt failed with a transient error.
    """

    @wraps(func)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
        policy: RetryPolicy = self.retry_policy
        last_exception: Exception | None = None
        delay = policy.base_delay_seconds

        for attempt in range(policy.max_attempts):
            try:
                return await func(self, *args, **kwargs)
            except RetryError:
                raise
            except TransientNetworkError as e:
                last_exception = e
                if attempt == policy.max_attempts - 1:
                    break
                logger.warning(
                    "%s attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                    func.__name__,
                    attempt + 1,
                    policy.max_attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
                delay *= 2  # Exponential backoff

        raise RetryError(
            f"All {policy.max_attempts} attempts failed for {func.__name__}: {last_exception}",
            last_exception=last_exception,
        )

    return wrapper


class RateLimiter:
    """Minimum-interval rate limiter for API requests."""

    def __init__(self, max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests_per_second: Maximum requests allowed per second.
        """
        if max_requests_per_second <= 0:
            raise ValueError("max_requests_per_second must be > 0")
        self._min_interval = 1.0 / max_requests_per_second
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


class SolanaClient:
    """Read-only Solana client for battle accounts and address histories.

    Every public call is rate limited and wrapped by `with_retry`, so a
    rate-limited or flaky provider is retried with backoff before an error
    reaches the caller.

    Example:
        ```python
        async with SolanaClient(
            rpc_url="https://mainnet.helius-rpc.com",
            transactions_api_url="https://api-mainnet.helius-rpc.com",
            api_key="...",
        ) as client:
            data = await client.get_account_data(battle_address)
            page = await client.get_address_transactions(battle_address, limit=50)
        ```
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        transactions_api_url: str,
        api_key: str | None = None,
        retry_policy: RetryPolicy | None = None,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            rpc_url: JSON-RPC endpoint for account reads.
            transactions_api_url: Base URL of the enhanced transactions API.
            api_key: Optional provider API key, sent as the `api-key` query param.
            retry_policy: Backoff policy for every request.
            max_requests_per_second: Client-side rate limit.
            timeout_seconds: Per-request timeout (ignored if http_client is given).
            http_client: Optional pre-built httpx client (not closed by `aclose`).
        """
        self._rpc_url = rpc_url.rstrip("/")
        self._transactions_api_url = transactions_api_url.rstrip("/")
        self._api_key = api_key
        self.retry_policy = retry_policy or RetryPolicy()
        self._rate_limiter = RateLimiter(max_requests_per_second)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> SolanaClient:
        api_key = settings.solana.api_key
        return cls(
            rpc_url=settings.solana.rpc_url,
            transactions_api_url=settings.solana.transactions_api_url,
            api_key=api_key.get_secret_value() if api_key else None,
            retry_policy=RetryPolicy(
                max_attempts=settings.retry.max_attempts,
                base_delay_seconds=settings.retry.base_delay_seconds,
            ),
            max_requests_per_second=settings.solana.max_requests_per_second,
            timeout_seconds=settings.solana.request_timeout_seconds,
        )

    def _auth_params(self) -> dict[str, str | int]:
        return {"api-key": self._api_key} if self._api_key else {}

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str | int] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Issue one HTTP request and classify failures.

        Raises:
            TransientNetworkError: On 429, 5xx or transport failures.
            ChainClientError: On other HTTP errors or a non-JSON body.
        """
        await self._rate_limiter.acquire()
        try:
            response = await self._http.request(method, url, params=params, json=json_body)
        except httpx.TransportError as e:
            raise TransientNetworkError(f"{method} {url} failed: {e}") from e

        status = response.status_code
        if status == 429:
            raise TransientNetworkError(f"{method} {url} rate limited (HTTP 429)")
        if status >= 500:
            raise TransientNetworkError(f"{method} {url} returned HTTP {status}")
        if status >= 400:
            raise ChainClientError(f"{method} {url} returned HTTP {status}")

        try:
            return response.json()
        except ValueError as e:
            raise ChainClientError(f"{method} {url} returned invalid JSON") from e

    @with_retry
    async def get_account_data(self, address: str) -> bytes | None:
        """Read the raw data of an account.

        Args:
            address: Base58 account address.

        Returns:
            Account data bytes, or None if the account does not exist.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getAccountInfo",
            "params": [address, {"encoding": "base64"}],
        }
        body = await self._request_json(
            "POST", self._rpc_url, params=self._auth_params(), json_body=payload
        )
        if not isinstance(body, dict):
            raise ChainClientError("Unexpected getAccountInfo response shape")

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            if code == RPC_RATE_LIMITED_CODE:
                raise TransientNetworkError(f"getAccountInfo rate limited: {error}")
            raise ChainClientError(f"getAccountInfo failed for {address}: {error}")

        value = (body.get("result") or {}).get("value")
        if value is None:
            return None

        data = value.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], str):
            raise ChainClientError(f"Unexpected account data encoding for {address}")
        try:
            return base64.b64decode(data[0], validate=True)
        except (binascii.Error, ValueError) as e:
            raise ChainClientError(f"Account data for {address} is not valid base64") from e

    @with_retry
    async def get_address_transactions(
        self,
        address: str,
        *,
        limit: int,
        before: str | None = None,
    ) -> list[AddressTransaction]:
        """Fetch one page of an address's transaction history, newest first.

        Args:
            address: Base58 address whose history to read.
            limit: Page size.
            before: Only return transactions older than this signature.

        Returns:
            Parsed transactions (empty when the history is exhausted).
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")

        params = self._auth_params()
        params["limit"] = limit
        if before:
            params["before"] = before

        url = f"{self._transactions_api_url}/v0/addresses/{address}/transactions"
        body = await self._request_json("GET", url, params=params)
        if not isinstance(body, list):
            raise ChainClientError("Unexpected transaction history response shape")

        try:
            return [AddressTransaction.from_dict(item) for item in body]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ChainClientError(f"Malformed transaction in history of {address}: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP session if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> SolanaClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
