"""
Test utilities and fixtures
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from quotefeed.baseline import BaselineGenerator
from quotefeed.cache import MemoryCacheStore
from quotefeed.errors import RateLimited, UpstreamFailed
from quotefeed.rate_guard import RateGuard
from quotefeed.schemas import DataSource, Quote
from quotefeed.service import QuoteService
from quotefeed.upstream import AlphaVantageClient

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; records delays and yields once to the loop."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class FakeUpstream:
    """Scripted upstream: per-symbol price, or an exception to raise."""

    def __init__(self, rate_guard: RateGuard, prices: dict[str, Any] | None = None) -> None:
        self.rate_guard = rate_guard
        self.prices = prices or {}
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def fetch_one(self, symbol: str, market: str) -> Quote:
        if not self.rate_guard.available():
            raise RateLimited(f"blocked: {symbol}")
        self.calls.append(symbol)
        if self.gate is not None:
            await self.gate.wait()
        value = self.prices.get(symbol, 100.0)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise UpstreamFailed(f"no price for {symbol}")
        return Quote(symbol=symbol, price=value, market=market, source=DataSource.REAL)


def exchange_rate_body(symbol: str, price: str | float, to: str = "USD") -> dict[str, Any]:
    return {
        "Realtime Currency Exchange Rate": {
            "1. From_Currency Code": symbol,
            "3. To_Currency Code": to,
            "5. Exchange Rate": str(price),
            "6. Last Refreshed": "2024-05-01 12:00:00",
            "7. Time Zone": "UTC",
        }
    }


def global_quote_body(symbol: str, price: str | float) -> dict[str, Any]:
    return {
        "Global Quote": {
            "01. symbol": symbol,
            "02. open": "187.00",
            "03. high": "191.50",
            "04. low": "186.20",
            "05. price": str(price),
            "06. volume": "51234567",
            "07. latest trading day": "2024-05-01",
            "08. previous close": "188.00",
            "09. change": "2.00",
            "10. change percent": "1.0638%",
        }
    }


class ProviderStub:
    """httpx.MockTransport handler that counts calls and answers from a callable."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def json_response(body: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body).encode("utf-8"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def rate_guard(clock) -> RateGuard:
    return RateGuard(clock=clock)


@pytest.fixture
def cache(clock) -> MemoryCacheStore:
    return MemoryCacheStore(ttl_sec=300, clock=clock)


@pytest.fixture
def make_service(clock, sleeper, rate_guard, cache):
    """Build a QuoteService around any upstream (fake or a real client on a mock transport)."""

    def _make(
        upstream=None,
        markets: dict[str, list[str]] | None = None,
        baseline_prices: dict[str, dict[str, float]] | None = None,
        request_interval_sec: float = 0.12,
    ) -> QuoteService:
        return QuoteService(
            upstream=upstream if upstream is not None else FakeUpstream(rate_guard),
            cache=cache,
            baseline=BaselineGenerator(baseline_prices or {}),
            markets=markets or {"crypto": ["BTC", "ETH"]},
            rate_guard=rate_guard,
            fresh_window_sec=15.0,
            request_interval_sec=request_interval_sec,
            clock=clock,
            sleep=sleeper,
        )

    return _make


@pytest.fixture
def make_client(rate_guard):
    def _make(stub: ProviderStub) -> AlphaVantageClient:
        return AlphaVantageClient(
            "test-key",
            rate_guard,
            base_url="https://provider.test/query",
            timeout_sec=1.0,
            cooldown_sec=60.0,
            transport=stub.transport,
        )

    return _make
