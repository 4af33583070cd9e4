"""
Quote retrieval orchestrator.

Per request for market M (cache key "market-M"):
  1. Snapshot cached and younger than the freshness window -> serve it verbatim.
     Cached but older -> serve simulate(snapshot, now); the cache is not touched.
  2. Nothing cached but a fetch for the key is already running in this process
     -> wait for it, then re-read the cache and apply step 1.
  3. Otherwise start (or join) the fetch: every configured symbol, one call at a
     time, spaced by 60000/RPM ms. All symbols succeed -> cache and return them.
     Any symbol fails -> simulate the previous snapshot if there was one, else
     generate baseline quotes; the fallback is cached too so the next requests
     do not hammer a failing provider.

Upstream errors never leave this module: callers always get a quote list and
tell real from synthetic data through Quote.source.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from quotefeed.baseline import BaselineGenerator
from quotefeed.cache import CacheStore, build_cache_store
from quotefeed.errors import QuoteFeedError
from quotefeed.inflight import InflightRegistry
from quotefeed.markets import cache_key
from quotefeed.observability import QUOTE_RESPONSES
from quotefeed.rate_guard import RateGuard
from quotefeed.schemas import Quote, Snapshot
from quotefeed.settings import Settings
from quotefeed.upstream import AlphaVantageClient
from quotefeed.volatility import simulate

logger = logging.getLogger(__name__)


class QuoteService:
    def __init__(
        self,
        *,
        upstream: AlphaVantageClient,
        cache: CacheStore,
        baseline: BaselineGenerator,
        markets: dict[str, list[str]],
        rate_guard: RateGuard | None = None,
        fresh_window_sec: float = 15.0,
        request_interval_sec: float = 0.12,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.upstream = upstream
        self.cache = cache
        self.baseline = baseline
        self.markets = markets
        self.rate_guard = rate_guard if rate_guard is not None else upstream.rate_guard
        self.fresh_window_ms = int(fresh_window_sec * 1000)
        self.request_interval_sec = request_interval_sec
        self.inflight: InflightRegistry[list[Quote]] = InflightRegistry()
        self._clock = clock
        self._sleep = sleep

    # ---------- Public API ----------

    def symbols_for(self, market: str) -> list[str]:
        return list(self.markets.get(market, []))

    async def get_quotes(self, market: str) -> list[Quote]:
        key = cache_key(market)

        cached = await self.cache.get(key)
        if cached is not None:
            return self._serve(market, cached)

        pending = self.inflight.get(key)
        if pending is not None:
            logger.debug("joining in-flight fetch for %s", key)
            await asyncio.shield(pending)
            again = await self.cache.get(key)
            if again is not None:
                return self._serve(market, again)

        return await self._fetch(market, key, previous=None)

    async def refresh(self, market: str) -> list[Quote]:
        """Force an upstream fetch; the current snapshot (even stale) backs the fallback."""
        key = cache_key(market)
        previous = await self.cache.get(key)
        return await self._fetch(market, key, previous=previous)

    # ---------- Internals ----------

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _serve(self, market: str, snapshot: Snapshot) -> list[Quote]:
        now_ms = self._now_ms()
        if snapshot.age_ms(now_ms) < self.fresh_window_ms:
            QUOTE_RESPONSES.labels(market=market, outcome="fresh").inc()
            return snapshot.quotes
        QUOTE_RESPONSES.labels(market=market, outcome="simulated").inc()
        return simulate(snapshot, now_ms)

    async def _fetch(self, market: str, key: str, previous: Snapshot | None) -> list[Quote]:
        task = self.inflight.register(key, lambda: self._fetch_and_store(market, key, previous))
        # shield: a disconnecting caller must not cancel the shared fetch
        return await asyncio.shield(task)

    async def _fetch_market(self, market: str) -> list[Quote]:
        quotes: list[Quote] = []
        for symbol in self.symbols_for(market):
            quotes.append(await self.upstream.fetch_one(symbol, market))
            # spacing follows the last call too, while the in-flight entry is still held
            await self._sleep(self.request_interval_sec)
        return quotes

    async def _fetch_and_store(
        self, market: str, key: str, previous: Snapshot | None
    ) -> list[Quote]:
        try:
            quotes = await self._fetch_market(market)
        except QuoteFeedError as exc:
            if previous is not None:
                fallback = simulate(previous, self._now_ms())
                outcome = "fallback_simulated"
            else:
                fallback = self.baseline.generate(market, self.symbols_for(market))
                outcome = "fallback_mock"
            logger.warning(
                "fetch for %s failed (%s: %s); serving %s", key, type(exc).__name__, exc, outcome
            )
            await self.cache.set(key, fallback)
            QUOTE_RESPONSES.labels(market=market, outcome=outcome).inc()
            return fallback

        await self.cache.set(key, quotes)
        QUOTE_RESPONSES.labels(market=market, outcome="fetched").inc()
        logger.info("fetched %d quotes for %s", len(quotes), key)
        return quotes


def build_service(settings: Settings) -> QuoteService:
    """Wire a QuoteService from settings. Requires settings.alpha_vantage_api_key."""
    rate_guard = RateGuard()
    upstream = AlphaVantageClient(
        settings.alpha_vantage_api_key or "",
        rate_guard,
        base_url=settings.alpha_base_url,
        timeout_sec=settings.upstream_timeout_sec,
        cooldown_sec=settings.rate_limit_cooldown_sec,
    )
    return QuoteService(
        upstream=upstream,
        cache=build_cache_store(settings.redis_url, settings.cache_ttl_sec),
        baseline=BaselineGenerator(settings.baseline_prices),
        markets=settings.markets,
        rate_guard=rate_guard,
        fresh_window_sec=settings.fresh_window_sec,
        request_interval_sec=settings.request_interval_sec,
    )
