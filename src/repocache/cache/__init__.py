"""Cache layer for repocache.

Provides the pieces of the entity cache-aside pattern:
- Deterministic cache keys derived from query conditions
- Direct (full snapshot) and Pointer (id reference) cache entries
- Redis and in-memory key-value caches with TTL-based expiration
- Fire-and-forget execution of cache writes and invalidations
"""

from repocache.cache.entries import (
    POINTER_PREFIX,
    CacheEntryError,
    Pointer,
    decode_entry,
    encode_direct,
    encode_pointer,
)
from repocache.cache.keys import CacheKeyBuilder, build_key, is_id_condition, parse_key
from repocache.cache.memory import MemoryKeyValueCache
from repocache.cache.protocol import KeyValueCache, ServiceCache, SetMode
from repocache.cache.redis import (
    RedisKeyValueCache,
    close_redis,
    get_redis,
    service_cache_from_settings,
)
from repocache.cache.tasks import BackgroundTasks

__all__ = [
    # Keys
    "CacheKeyBuilder",
    "build_key",
    "is_id_condition",
    "parse_key",
    # Entries
    "POINTER_PREFIX",
    "CacheEntryError",
    "Pointer",
    "decode_entry",
    "encode_direct",
    "encode_pointer",
    # Clients
    "KeyValueCache",
    "ServiceCache",
    "SetMode",
    "MemoryKeyValueCache",
    "RedisKeyValueCache",
    "get_redis",
    "close_redis",
    "service_cache_from_settings",
    # Background work
    "BackgroundTasks",
]
