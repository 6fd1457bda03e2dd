"""Cache-aside entity service.

``CachedEntityService`` wraps an ``EntityRepository`` and a key-value cache:

- ``find_one`` reads through the cache
- ``update_by_id`` / ``delete_by_id`` / ``update_one`` invalidate
- ``find_one_and_update`` writes through
- bulk and unbounded operations go straight to the store

Cache layout:
- A lookup by ``{"id": X}`` stores the full entity (direct entry) under the
  id key. This is the single canonical copy of the entity.
- A lookup by any other condition stores only a pointer ("#refId_X") under
  the condition key. Reading it costs a second cache read against the id
  key; if that copy is gone the entity is reloaded from the store by id and
  the direct entry is rewritten, while the pointer is left as is.

Pointers are never invalidated by writes. A pointer can name an entity that
no longer matches its condition for at most the cache TTL; it always
resolves to the current canonical copy of that entity.

The cache is an optimization only: every cache failure is logged at WARNING
and treated as a miss, while store errors propagate unchanged. Deletes are
awaited before a write returns, so the next read cannot see the old entry.
Cache writes run as eagerly started background tasks and are not awaited.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Generic

from sqlalchemy import Select

from repocache.cache.entries import (
    Pointer,
    decode_entry,
    encode_direct,
    encode_pointer,
)
from repocache.cache.keys import ID_FIELD, CacheKeyBuilder, is_id_condition
from repocache.cache.protocol import KeyValueCache, ServiceCache, SetMode
from repocache.cache.tasks import BackgroundTasks
from repocache.core.model import (
    EntityT,
    FindAllOptions,
    FindAllResponse,
    QueryCondition,
    UpdateOptions,
)
from repocache.persistence.repositories import EntityInput, EntityRepository

logger = logging.getLogger(__name__)


class CachedEntityService(Generic[EntityT]):
    """Entity service with an optional read/write-through cache.

    Args:
        repo: Backing store.
        model: Entity type cached snapshots are validated into.
        cache: Cache wiring; None disables caching.
        cache_enabled: Explicit switch decided by the application
            (see ``Settings.caching_allowed``).
        log: Destination for cache diagnostics; defaults to this
            module's logger.
    """

    def __init__(
        self,
        repo: EntityRepository[EntityT],
        model: type[EntityT],
        cache: ServiceCache | None = None,
        *,
        cache_enabled: bool = True,
        log: logging.Logger | None = None,
    ):
        self.repo = repo
        self.model = model
        self.logger = log or logger

        self._cache: KeyValueCache | None = cache.cache if cache and cache_enabled else None
        self._ttl = cache.ttl if cache else None
        self.key_builder = CacheKeyBuilder(
            cache.prefix if cache else "",
            sort_fields=cache.sort_fields if cache else False,
        )
        self._background = BackgroundTasks(self.logger)

    @property
    def cache_enabled(self) -> bool:
        return self._cache is not None

    async def drain(self) -> None:
        """Wait for pending background cache writes."""
        await self._background.drain()

    # -------------------------------------------------------------------------
    # Cached operations
    # -------------------------------------------------------------------------

    async def create(self, entity: EntityInput) -> EntityT:
        # A new id cannot be cached yet; nothing to invalidate
        return await self.repo.create(entity)

    async def find_one(self, condition: QueryCondition) -> EntityT | None:
        """Read-through lookup of a single entity."""
        if not self._cacheable(condition):
            return await self.repo.find_one(condition)

        cached = await self._read_cache(condition)
        if isinstance(cached, Pointer):
            return await self._resolve_pointer(cached)
        if cached is not None:
            return cached

        entity = await self.repo.find_one(condition)
        if entity is not None:
            self._write_cache(condition, entity)
        return entity

    async def find_one_and_update(
        self,
        condition: QueryCondition,
        patch: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> EntityT | None:
        entity = await self.repo.find_one_and_update(condition, patch, options)
        if entity is not None:
            self._write_cache(condition, entity)
        return entity

    async def update_by_id(self, entity_id: str, patch: Mapping[str, Any]) -> bool:
        result = await self.repo.update_by_id(entity_id, patch)
        await self._invalidate({ID_FIELD: entity_id})
        return result

    async def delete_by_id(self, entity_id: str) -> bool:
        result = await self.repo.delete_by_id(entity_id)
        await self._invalidate({ID_FIELD: entity_id})
        return result

    async def update_one(self, filter: QueryCondition, update: Mapping[str, Any]) -> bool:
        result = await self.repo.update_one(filter, update)
        await self._invalidate(filter)
        return result

    # -------------------------------------------------------------------------
    # Pass-through operations
    # -------------------------------------------------------------------------

    async def find(
        self,
        filter: QueryCondition | None = None,
        sort: Mapping[str, int] | None = None,
        limit: int | None = None,
    ) -> list[EntityT]:
        return await self.repo.find(filter, sort, limit)

    async def find_all(
        self, condition: QueryCondition, options: FindAllOptions | None = None
    ) -> FindAllResponse[Any]:
        return await self.repo.find_all(condition, options)

    async def aggregate(self, statement: Select[Any]) -> list[dict[str, Any]]:
        return await self.repo.aggregate(statement)

    async def populate(
        self, entities: Sequence[EntityT] | EntityT, paths: Sequence[str]
    ) -> list[EntityT]:
        return await self.repo.populate(entities, paths)

    async def find_and_populate(
        self, filter: QueryCondition, paths: Sequence[str]
    ) -> list[EntityT]:
        return await self.repo.find_and_populate(filter, paths)

    async def insert_many(self, docs: Sequence[EntityInput] | EntityInput) -> list[EntityT]:
        return await self.repo.insert_many(docs)

    async def delete_many(self, filter: QueryCondition) -> int:
        return await self.repo.delete_many(filter)

    async def update_many(self, filter: QueryCondition, update: Mapping[str, Any]) -> int:
        return await self.repo.update_many(filter, update)

    # -------------------------------------------------------------------------
    # Cache internals
    # -------------------------------------------------------------------------

    def _cacheable(self, condition: QueryCondition) -> bool:
        # An unfiltered lookup has no meaningful key
        return self._cache is not None and len(condition) > 0

    async def _read_cache(self, condition: QueryCondition) -> EntityT | Pointer | None:
        """Cached entity or pointer for ``condition``; None on miss or failure."""
        assert self._cache is not None
        key = self.key_builder.build(condition)
        try:
            raw = await self._cache.get(key)
            if not raw:
                return None
            return decode_entry(raw, self.model)
        except Exception as e:
            self.logger.warning(f"Get cache with key {key} error: {e!r}")
            return None

    async def _resolve_pointer(self, pointer: Pointer) -> EntityT | None:
        id_condition = {ID_FIELD: pointer.ref_id}

        cached = await self._read_cache(id_condition)
        if cached is not None and not isinstance(cached, Pointer):
            return cached

        # Canonical copy expired or was invalidated: reload by id, not by the
        # original condition, and rewrite only the direct entry
        entity = await self.repo.find_one(id_condition)
        if entity is not None:
            self._write_cache(id_condition, entity)
        return entity

    def _write_cache(self, condition: QueryCondition, entity: EntityT) -> None:
        """Store a direct entry for id lookups, a pointer for everything else."""
        if not self._cacheable(condition):
            return
        assert self._cache is not None

        key = self.key_builder.build(condition)
        try:
            if is_id_condition(condition):
                value = encode_direct(entity)
            elif entity.id:
                value = encode_pointer(entity.id)
            else:
                return
        except Exception as e:
            self.logger.warning(f"Set cache with key {key} error: {e!r}")
            return

        self._background.spawn(self._set(key, value), f"Set cache with key {key}")

    async def _invalidate(self, condition: QueryCondition) -> None:
        """Delete the entry for ``condition`` before the write returns."""
        if not self._cacheable(condition):
            return
        assert self._cache is not None

        key = self.key_builder.build(condition)
        try:
            await self._cache.delete(key)
        except Exception as e:
            self.logger.warning(f"Delete cache with key {key} error: {e!r}")

    async def _set(self, key: str, value: str) -> None:
        assert self._cache is not None
        await self._cache.set(key, value, SetMode.EX, self._ttl)
