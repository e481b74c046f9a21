"""
TTL cache for provider metadata (JWKS key sets, OIDC discovery documents)

Three explicit variants, selected by configuration:
- NullCache: never stores, always calls the producer
- MemoryCache: per-process cachetools TLRUCache of (ttl, value) entries
- RedisCache: shared cache on redis.asyncio, values stored as JSON

Concurrent population is last-writer-wins; an entry is replaced by a single
assignment so readers never see a half-written value.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Tuple

import redis.asyncio as redis_async
from cachetools import TLRUCache
from loguru import logger
from redis.exceptions import RedisError

LOG_PREFIX = "[Cache]"

Producer = Callable[[], Awaitable[Any]]


def _entry_expiry(key: str, entry: Tuple[int, Any], now: float) -> float:
    return now + entry[0]


class Cache(ABC):
    """Cache contract used by the JWKS verifier and OIDC discovery."""

    @abstractmethod
    async def get_or_set(self, key: str, ttl: int, producer: Producer) -> Any:
        """Return the cached value for `key`, computing and storing it on a miss."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop `key` from the cache."""


class NullCache(Cache):
    """No-op cache: every lookup calls the producer."""

    async def get_or_set(self, key: str, ttl: int, producer: Producer) -> Any:
        return await producer()

    async def delete(self, key: str) -> None:
        return None


class MemoryCache(Cache):
    """In-process TTL cache with a per-entry lifetime, bounded to `maxsize` entries."""

    def __init__(self, maxsize: int = 1024, clock: Callable[[], float] = time.monotonic):
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=clock)

    async def get_or_set(self, key: str, ttl: int, producer: Producer) -> Any:
        entry = self._entries.get(key)
        if entry is not None:
            return entry[1]

        value = await producer()
        self._entries[key] = (ttl, value)
        return value

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class RedisCache(Cache):
    """Redis-backed TTL cache (values must be JSON-serializable)."""

    def __init__(self, client: redis_async.Redis, prefix: str = "headless_oauth:"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, pool_size: int = 10) -> "RedisCache":
        client = redis_async.Redis.from_url(url, max_connections=pool_size, decode_responses=True)
        return cls(client)

    async def get_or_set(self, key: str, ttl: int, producer: Producer) -> Any:
        full_key = self._prefix + key
        try:
            cached: Optional[str] = await self._client.get(full_key)
        except RedisError as e:
            # Cache outage degrades to direct fetches
            logger.warning(f"{LOG_PREFIX} Redis get failed for {key}: {e}")
            return await producer()

        if cached is not None:
            return json.loads(cached)

        value = await producer()
        try:
            await self._client.set(full_key, json.dumps(value, ensure_ascii=False), ex=ttl)
        except RedisError as e:
            logger.warning(f"{LOG_PREFIX} Redis set failed for {key}: {e}")
        return value

    async def delete(self, key: str) -> None:
        await self._client.delete(self._prefix + key)

    async def close(self) -> None:
        await self._client.aclose()


def build_cache(kind: str, redis_url: Optional[str] = None) -> Cache:
    """Build the cache variant named in configuration (`null`, `memory`, `redis`)."""
    kind = (kind or "memory").lower()
    if kind == "null":
        return NullCache()
    if kind == "redis":
        if not redis_url:
            logger.warning(f"{LOG_PREFIX} cache=redis but no redis_url configured, using memory cache")
            return MemoryCache()
        return RedisCache.from_url(redis_url)
    if kind != "memory":
        logger.warning(f"{LOG_PREFIX} Unknown cache kind '{kind}', using memory cache")
    return MemoryCache()
