"""Redis cache implementation for repocache.

Provides the async key-value cache used by cached services.
Uses redis-py async client for connection pooling.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis

from repocache.cache.protocol import ServiceCache, SetMode
from repocache.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

# Module-level connection pool
_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisKeyValueCache:
    """``KeyValueCache`` over a redis-py asyncio client."""

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> str | None:
        value = await self.client.get(key)
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    async def set(
        self,
        key: str,
        value: str,
        mode: SetMode = SetMode.EX,
        duration: int | None = None,
    ) -> bool:
        if mode is SetMode.KEEPTTL:
            result = await self.client.set(key, value, keepttl=True)
        elif mode is SetMode.PX:
            result = await self.client.set(key, value, px=duration)
        else:
            result = await self.client.set(key, value, ex=duration)
        return bool(result)

    async def delete(self, key: str) -> int:
        return cast(int, await self.client.delete(key))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self.client.expire(key, seconds))

    async def incr_by(self, key: str, increment: int) -> int:
        return cast(int, await self.client.incrby(key, increment))

    async def decr_by(self, key: str, decrement: int) -> int:
        return cast(int, await self.client.decrby(key, decrement))

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-1 persistent, -2 missing)."""
        return cast(int, await self.client.ttl(key))

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except Exception:
            return False


async def service_cache_from_settings(unique_key: str) -> ServiceCache:
    """Build the cache wiring for one entity service from global settings."""
    return ServiceCache(
        app_name=settings.app_name,
        unique_key=unique_key,
        cache=RedisKeyValueCache(await get_redis()),
        ttl=settings.cache_ttl,
        sort_fields=settings.cache_sort_fields,
    )
