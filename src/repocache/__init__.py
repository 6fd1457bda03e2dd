"""repocache: cache-aside data access for entity stores.

Usage:
    from repocache import CachedEntityService, ServiceCache, sql_repository_from_settings

    users = CachedEntityService(
        sql_repository_from_settings(UserTable, User),
        User,
        ServiceCache("shop", "users", RedisKeyValueCache(await get_redis()), ttl=600),
        cache_enabled=settings.caching_allowed,
    )
    user = await users.find_one({"email": "a@x.com"})
"""

from repocache.cache import (
    CacheKeyBuilder,
    KeyValueCache,
    MemoryKeyValueCache,
    RedisKeyValueCache,
    ServiceCache,
    build_key,
)
from repocache.core import BaseEntity, FindAllOptions, FindAllResponse, UpdateOptions
from repocache.persistence import EntityRepository, SqlRepository, sql_repository_from_settings
from repocache.services import CachedEntityService

__version__ = "0.1.0"

__all__ = [
    "CachedEntityService",
    "ServiceCache",
    "KeyValueCache",
    "MemoryKeyValueCache",
    "RedisKeyValueCache",
    "CacheKeyBuilder",
    "build_key",
    "BaseEntity",
    "FindAllOptions",
    "FindAllResponse",
    "UpdateOptions",
    "EntityRepository",
    "SqlRepository",
    "sql_repository_from_settings",
]
