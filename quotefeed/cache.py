# quotefeed/cache.py
# Purpose: Snapshot storage per market key, with a fixed retention TTL.
# Why: Shields the rate-limited provider and gives the simulator something to evolve.
# Pitfalls: MemoryCacheStore is per-process; it resets on restart and is not shared
#   between replicas. Configure REDIS_URL for a durable, shared store.

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from pydantic import ValidationError
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from quotefeed.errors import CacheUnavailable
from quotefeed.schemas import Quote, Snapshot

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """get/set of one Snapshot per key. Reads never return an expired entry."""

    kind: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Snapshot | None:
        pass

    @abstractmethod
    async def set(self, key: str, quotes: list[Quote]) -> Snapshot:
        pass


class MemoryCacheStore(CacheStore):
    kind = "memory"

    def __init__(self, ttl_sec: int = 300, clock: Callable[[], float] = time.time):
        self.ttl_ms = int(ttl_sec * 1000)
        self._clock = clock
        # store: key -> snapshot (captured_at is epoch ms)
        self._entries: dict[str, Snapshot] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str) -> Snapshot | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.age_ms(self._now_ms()) > self.ttl_ms:
            # expired
            self._entries.pop(key, None)
            return None
        return entry

    async def set(self, key: str, quotes: list[Quote]) -> Snapshot:
        snapshot = Snapshot(captured_at=self._now_ms(), quotes=list(quotes))
        self._entries[key] = snapshot
        return snapshot


class RedisCacheStore(CacheStore):
    """
    Redis-backed store; TTL is applied by Redis at write time (SET ... EX).

    If Redis cannot be reached the operation is served from an in-process
    MemoryCacheStore instead, so a Redis outage degrades to per-process caching
    rather than to an error.
    """

    kind = "redis"

    def __init__(
        self,
        client: aioredis.Redis,
        ttl_sec: int = 300,
        clock: Callable[[], float] = time.time,
        fallback: MemoryCacheStore | None = None,
    ):
        self.client = client
        self.ttl_sec = ttl_sec
        self._clock = clock
        self.fallback = fallback or MemoryCacheStore(ttl_sec=ttl_sec, clock=clock)

    @classmethod
    def from_url(cls, url: str, ttl_sec: int = 300, **kwargs) -> RedisCacheStore:
        return cls(aioredis.Redis.from_url(url), ttl_sec=ttl_sec, **kwargs)

    async def _raw_get(self, key: str) -> bytes | str | None:
        try:
            return await self.client.get(key)
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(str(exc)) from exc

    async def _raw_set(self, key: str, payload: str) -> None:
        try:
            await self.client.set(key, payload, ex=self.ttl_sec)
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(str(exc)) from exc

    async def get(self, key: str) -> Snapshot | None:
        try:
            raw = await self._raw_get(key)
        except CacheUnavailable as exc:
            logger.warning("redis get failed for %s, using in-process cache: %s", key, exc)
            return await self.fallback.get(key)

        if not raw:
            return None
        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("discarding undecodable snapshot at %s", key)
            return None

    async def set(self, key: str, quotes: list[Quote]) -> Snapshot:
        snapshot = Snapshot(captured_at=int(self._clock() * 1000), quotes=list(quotes))
        try:
            await self._raw_set(key, snapshot.model_dump_json(by_alias=True))
        except CacheUnavailable as exc:
            logger.warning("redis set failed for %s, using in-process cache: %s", key, exc)
            return await self.fallback.set(key, quotes)
        return snapshot

    async def aclose(self) -> None:
        await self.client.aclose()


def build_cache_store(
    redis_url: str | None, ttl_sec: int, clock: Callable[[], float] = time.time
) -> CacheStore:
    if redis_url:
        logger.info("using redis cache store")
        return RedisCacheStore.from_url(redis_url, ttl_sec=ttl_sec, clock=clock)
    logger.info("REDIS_URL not set, using in-process cache store")
    return MemoryCacheStore(ttl_sec=ttl_sec, clock=clock)
