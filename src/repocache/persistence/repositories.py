"""Repository pattern for entity persistence.

``EntityRepository`` is the store contract cached services are written
against. ``SqlRepository`` implements it for any declarative table that
uses ``EntityMixin``, mapping rows to pydantic entities.

Every operation runs in its own session and transaction; callers never see
ORM rows, only validated entities (or plain dicts for field selections and
aggregates). Errors raised by SQLAlchemy or the driver propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Generic, Protocol

from pydantic import BaseModel
from sqlalchemy import Select, delete, func, select
from sqlalchemy import update as sql_update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from repocache.core.model import (
    EntityT,
    FindAllOptions,
    FindAllResponse,
    QueryCondition,
    UpdateOptions,
)

EntityInput = Mapping[str, Any] | BaseModel


class EntityRepository(Protocol[EntityT]):
    """Backing store operations consumed by ``CachedEntityService``."""

    async def create(self, entity: EntityInput) -> EntityT: ...

    async def find(
        self,
        filter: QueryCondition | None = None,
        sort: Mapping[str, int] | None = None,
        limit: int | None = None,
    ) -> list[EntityT]: ...

    async def find_one(self, condition: QueryCondition) -> EntityT | None: ...

    async def find_one_and_update(
        self,
        condition: QueryCondition,
        patch: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> EntityT | None: ...

    async def find_all(
        self, condition: QueryCondition, options: FindAllOptions | None = None
    ) -> FindAllResponse[Any]: ...

    async def update_one(self, filter: QueryCondition, update: Mapping[str, Any]) -> bool: ...

    async def update_by_id(self, entity_id: str, patch: Mapping[str, Any]) -> bool: ...

    async def update_many(self, filter: QueryCondition, update: Mapping[str, Any]) -> int: ...

    async def delete_by_id(self, entity_id: str) -> bool: ...

    async def delete_many(self, filter: QueryCondition) -> int: ...

    async def aggregate(self, statement: Select[Any]) -> list[dict[str, Any]]: ...

    async def populate(
        self, entities: Sequence[EntityT] | EntityT, paths: Sequence[str]
    ) -> list[EntityT]: ...

    async def find_and_populate(
        self, filter: QueryCondition, paths: Sequence[str]
    ) -> list[EntityT]: ...

    async def insert_many(
        self, docs: Sequence[EntityInput] | EntityInput
    ) -> list[EntityT]: ...


class SqlRepository(Generic[EntityT]):
    """SQLAlchemy-backed ``EntityRepository``.

    Args:
        table: Declarative class mixing in ``EntityMixin``.
        model: Entity type rows are validated into.
        session_factory: Async session factory; one session per operation.
        soft_delete: Deletes set ``destroyed`` instead of removing rows, and
            reads skip flagged rows.
    """

    def __init__(
        self,
        table: type[Any],
        model: type[EntityT],
        session_factory: async_sessionmaker[AsyncSession],
        soft_delete: bool = True,
    ):
        self.table = table
        self.model = model
        self.session_factory = session_factory
        self.soft_delete = soft_delete

        mapper = sa_inspect(table)
        self._columns = frozenset(attr.key for attr in mapper.column_attrs)
        self._relationships = frozenset(mapper.relationships.keys())

    # -------------------------------------------------------------------------
    # Row <-> entity mapping
    # -------------------------------------------------------------------------

    def _to_entity(self, row: Any) -> EntityT:
        # Only read attributes that are already loaded; touching an unloaded
        # relationship would trigger lazy IO outside the async context.
        unloaded = sa_inspect(row).unloaded
        data = {
            name: getattr(row, name)
            for name in self.model.model_fields
            if name not in unloaded and (name in self._columns or name in self._relationships)
        }
        return self.model.model_validate(data, from_attributes=True)

    def _values(self, entity: EntityInput) -> dict[str, Any]:
        if isinstance(entity, BaseModel):
            raw = entity.model_dump(exclude_none=True)
        else:
            raw = dict(entity)
        return {key: value for key, value in raw.items() if key not in self._relationships}

    def _patch_values(self, patch: Mapping[str, Any]) -> dict[str, Any]:
        unknown = [key for key in patch if key not in self._columns]
        if unknown:
            raise ValueError(f"Unknown fields for {self.table.__name__}: {', '.join(unknown)}")
        return {key: value for key, value in patch.items() if key != "id"}

    def _select(self, condition: QueryCondition | None = None) -> Select[Any]:
        stmt = select(self.table).filter_by(**dict(condition or {}))
        if self.soft_delete:
            stmt = stmt.where(self.table.destroyed.is_(False))
        return stmt

    def _ids(self, condition: QueryCondition) -> Select[Any]:
        stmt = select(self.table.id).filter_by(**dict(condition))
        if self.soft_delete:
            stmt = stmt.where(self.table.destroyed.is_(False))
        return stmt

    def _order(self, stmt: Select[Any], sort: Mapping[str, int] | None) -> Select[Any]:
        for field, direction in (sort or {}).items():
            column = getattr(self.table, field)
            stmt = stmt.order_by(column.desc() if direction < 0 else column.asc())
        return stmt

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create(self, entity: EntityInput) -> EntityT:
        """Insert one entity and return it with generated columns filled in."""
        async with self.session_factory() as session, session.begin():
            row = self.table(**self._values(entity))
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return self._to_entity(row)

    async def insert_many(self, docs: Sequence[EntityInput] | EntityInput) -> list[EntityT]:
        """Insert one or more entities in a single transaction."""
        items = [docs] if isinstance(docs, (Mapping, BaseModel)) else list(docs)
        async with self.session_factory() as session, session.begin():
            rows = [self.table(**self._values(item)) for item in items]
            session.add_all(rows)
            await session.flush()
            for row in rows:
                await session.refresh(row)
            return [self._to_entity(row) for row in rows]

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    async def find(
        self,
        filter: QueryCondition | None = None,
        sort: Mapping[str, int] | None = None,
        limit: int | None = None,
    ) -> list[EntityT]:
        stmt = self._order(self._select(filter), sort)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entity(row) for row in result.scalars()]

    async def find_one(self, condition: QueryCondition) -> EntityT | None:
        async with self.session_factory() as session:
            result = await session.execute(self._select(condition).limit(1))
            row = result.scalars().first()
            return self._to_entity(row) if row is not None else None

    async def find_all(
        self, condition: QueryCondition, options: FindAllOptions | None = None
    ) -> FindAllResponse[Any]:
        """Paginated query.

        With ``options.fields``, each item is a dict holding only those fields
        plus ``id``; otherwise items are entities.
        """
        options = options or FindAllOptions()
        base = self._select(condition)
        count_stmt = select(func.count()).select_from(base.subquery())
        page_stmt = self._order(base, options.sort).offset(options.offset).limit(options.limit)

        async with self.session_factory() as session:
            total = (await session.execute(count_stmt)).scalar_one()
            result = await session.execute(page_stmt)
            entities = [self._to_entity(row) for row in result.scalars()]

        data: list[Any] = entities
        if options.fields:
            include = set(options.fields) | {"id"}
            data = [entity.model_dump(include=include) for entity in entities]
        return FindAllResponse.build(data, total, options)

    async def aggregate(self, statement: Select[Any]) -> list[dict[str, Any]]:
        """Execute an arbitrary selectable and return rows as dicts."""
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [dict(row._mapping) for row in result]

    async def populate(
        self, entities: Sequence[EntityT] | EntityT, paths: Sequence[str]
    ) -> list[EntityT]:
        """Reload entities with the named relationships eagerly loaded.

        Order follows the input; entities no longer in the store are dropped.
        """
        items = [entities] if isinstance(entities, BaseModel) else list(entities)
        if not items:
            return []
        ids = [item.id for item in items]
        stmt = select(self.table).where(self.table.id.in_(ids)).options(*self._loaders(paths))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            by_id = {row.id: self._to_entity(row) for row in result.scalars()}
        return [by_id[entity_id] for entity_id in ids if entity_id in by_id]

    async def find_and_populate(
        self, filter: QueryCondition, paths: Sequence[str]
    ) -> list[EntityT]:
        stmt = self._select(filter).options(*self._loaders(paths))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entity(row) for row in result.scalars()]

    def _loaders(self, paths: Sequence[str]) -> list[Any]:
        unknown = [path for path in paths if path not in self._relationships]
        if unknown:
            raise ValueError(
                f"Unknown relationships for {self.table.__name__}: {', '.join(unknown)}"
            )
        return [selectinload(getattr(self.table, path)) for path in paths]

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    async def update_by_id(self, entity_id: str, patch: Mapping[str, Any]) -> bool:
        """Apply ``patch`` to one entity. Returns False if no row matched."""
        return await self._update_where({"id": entity_id}, patch) > 0

    async def update_one(self, filter: QueryCondition, update: Mapping[str, Any]) -> bool:
        """Apply ``update`` to the first entity matching ``filter``."""
        values = self._patch_values(update)
        async with self.session_factory() as session, session.begin():
            target = (await session.execute(self._ids(filter).limit(1))).scalar_one_or_none()
            if target is None:
                return False
            stmt = (
                sql_update(self.table)
                .where(self.table.id == target)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def update_many(self, filter: QueryCondition, update: Mapping[str, Any]) -> int:
        return await self._update_where(filter, update)

    async def find_one_and_update(
        self,
        condition: QueryCondition,
        patch: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> EntityT | None:
        """Update the first match and return it.

        Returns the post-update entity, or the pre-update snapshot when
        ``options.new`` is false. With ``options.upsert`` a missing entity is
        created from ``condition`` merged with ``patch``.
        """
        options = options or UpdateOptions()
        values = self._patch_values(patch)

        async with self.session_factory() as session, session.begin():
            result = await session.execute(self._select(condition).limit(1))
            row = result.scalars().first()

            if row is None:
                if not options.upsert:
                    return None
                row = self.table(**{**dict(condition), **values})
                session.add(row)
                await session.flush()
                await session.refresh(row)
                return self._to_entity(row) if options.new else None

            before = self._to_entity(row)
            for key, value in values.items():
                setattr(row, key, value)
            await session.flush()
            await session.refresh(row)
            return self._to_entity(row) if options.new else before

    async def _update_where(self, condition: QueryCondition, patch: Mapping[str, Any]) -> int:
        values = self._patch_values(patch)
        stmt = (
            sql_update(self.table)
            .where(self.table.id.in_(self._ids(condition)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    async def delete_by_id(self, entity_id: str) -> bool:
        """Delete one entity. Returns False if no row matched."""
        return await self.delete_many({"id": entity_id}) > 0

    async def delete_many(self, filter: QueryCondition) -> int:
        if self.soft_delete:
            return await self._update_where(filter, {"destroyed": True})

        stmt = (
            delete(self.table)
            .where(self.table.id.in_(self._ids(filter)))
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount
