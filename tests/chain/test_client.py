"""Tests for the Solana client, retry decorator and rate limiter."""

from __future__ import annotations

import base64
import json
import time

import httpx
import pytest

from wavewarz_analytics.chain.client import (
    ChainClientError,
    RateLimiter,
    RetryError,
    RetryPolicy,
    SolanaClient,
    TransientNetworkError,
    with_retry,
)

RPC_URL = "https://rpc.test"
TX_API_URL = "https://tx.test"


def make_client(handler, *, attempts: int = 3) -> SolanaClient:
    return SolanaClient(
        rpc_url=RPC_URL,
        transactions_api_url=TX_API_URL,
        api_key="secret",
        retry_policy=RetryPolicy(max_attempts=attempts, base_delay_seconds=0),
        max_requests_per_second=1000,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self) -> None:
        limiter = RateLimiter(max_requests_per_second=10)
        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start < 0.05

    @pytest.mark.asyncio
    async def test_enforces_interval(self) -> None:
        limiter = RateLimiter(max_requests_per_second=10)
        await limiter.acquire()
        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start >= 0.08

    def test_rejects_non_positive_rate(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(max_requests_per_second=0)


class TestWithRetry:
    class Flaky:
        def __init__(self, failures: int, error: Exception) -> None:
            self.retry_policy = RetryPolicy(max_attempts=3, base_delay_seconds=0)
            self.calls = 0
            self._failures = failures
            self._error = error

        @with_retry
        async def call(self) -> str:
            self.calls += 1
            if self.calls <= self._failures:
                raise self._error
            return "ok"

    @pytest.mark.asyncio
    async def test_recovers_from_transient_errors(self) -> None:
        flaky = self.Flaky(2, TransientNetworkError("503"))
        assert await flaky.call() == "ok"
        assert flaky.calls == 3

    @pytest.mark.asyncio
    async def test_exhaustion_raises_retry_error(self) -> None:
        flaky = self.Flaky(5, TransientNetworkError("503"))
        with pytest.raises(RetryError) as exc_info:
            await flaky.call()
        assert flaky.calls == 3
        assert isinstance(exc_info.value.last_exception, TransientNetworkError)

    @pytest.mark.asyncio
    async def test_permanent_errors_not_retried(self) -> None:
        flaky = self.Flaky(5, ChainClientError("400"))
        with pytest.raises(ChainClientError):
            await flaky.call()
        assert flaky.calls == 1

    def test_policy_validation(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay_seconds=-1)


class TestGetAccountData:
    @pytest.mark.asyncio
    async def test_returns_decoded_bytes(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            encoded = base64.b64encode(b"\x01\x02\x03").decode()
            return httpx.Response(200, json={"result": {"value": {"data": [encoded, "base64"]}}})

        async with make_client(handler) as client:
            data = await client.get_account_data("Battle111")

        assert data == b"\x01\x02\x03"
        body = json.loads(seen[0].content)
        assert body["method"] == "getAccountInfo"
        assert body["params"][0] == "Battle111"
        assert seen[0].url.params["api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_missing_account_returns_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {"value": None}})

        async with make_client(handler) as client:
            assert await client.get_account_data("Battle111") is None

    @pytest.mark.asyncio
    async def test_retries_on_429_then_succeeds(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                return httpx.Response(429)
            return httpx.Response(200, json={"result": {"value": None}})

        async with make_client(handler) as client:
            assert await client.get_account_data("Battle111") is None
        assert calls == 3

    @pytest.mark.asyncio
    async def test_persistent_5xx_raises_retry_error(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        async with make_client(handler, attempts=4) as client:
            with pytest.raises(RetryError):
                await client.get_account_data("Battle111")
        assert calls == 4

    @pytest.mark.asyncio
    async def test_4xx_fails_immediately(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401)

        async with make_client(handler) as client:
            with pytest.raises(ChainClientError) as exc_info:
                await client.get_account_data("Battle111")
        assert not isinstance(exc_info.value, TransientNetworkError)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_rpc_rate_limit_code_is_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(200, json={"error": {"code": -32429, "message": "slow down"}})
            return httpx.Response(200, json={"result": {"value": None}})

        async with make_client(handler) as client:
            assert await client.get_account_data("Battle111") is None
        assert calls == 2

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("boom", request=request)
            return httpx.Response(200, json={"result": {"value": None}})

        async with make_client(handler) as client:
            assert await client.get_account_data("Battle111") is None
        assert calls == 2

    @pytest.mark.asyncio
    async def test_bad_encoding_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {"value": {"data": "nope"}}})

        async with make_client(handler) as client:
            with pytest.raises(ChainClientError):
                await client.get_account_data("Battle111")


class TestGetAddressTransactions:
    @pytest.mark.asyncio
    async def test_parses_page_and_passes_cursor(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {
                        "signature": "sig2",
                        "timestamp": 1_772_395_260,
                        "nativeTransfers": [
                            {"fromUserAccount": "W1", "toUserAccount": "B1", "amount": 10**9}
                        ],
                    }
                ],
            )

        async with make_client(handler) as client:
            page = await client.get_address_transactions("B1", limit=50, before="sig9")

        assert [tx.signature for tx in page] == ["sig2"]
        request = seen[0]
        assert request.url.path == "/v0/addresses/B1/transactions"
        assert request.url.params["limit"] == "50"
        assert request.url.params["before"] == "sig9"
        assert request.url.params["api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_no_cursor_on_first_page(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        async with make_client(handler) as client:
            assert await client.get_address_transactions("B1", limit=10) == []
        assert "before" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_non_list_body_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "bad"})

        async with make_client(handler) as client:
            with pytest.raises(ChainClientError):
                await client.get_address_transactions("B1", limit=10)

    @pytest.mark.asyncio
    async def test_malformed_item_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"timestamp": 1}])

        async with make_client(handler) as client:
            with pytest.raises(ChainClientError, match="Malformed"):
                await client.get_address_transactions("B1", limit=10)

    @pytest.mark.asyncio
    async def test_invalid_limit(self) -> None:
        async with make_client(lambda r: httpx.Response(200, json=[])) as client:
            with pytest.raises(ValueError):
                await client.get_address_transactions("B1", limit=0)
