"""Process-wide async engine for SQL-backed entity stores.

The engine and session factory are created lazily from
``Settings.database_url`` (SQLite through aiosqlite by default; any async
driver URL works) and shared by every ``SqlRepository`` built here.

Usage:
    users = sql_repository_from_settings(UserTable, User)
    await init_db()
    ...
    await close_db()
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from repocache.config import settings
from repocache.core.model import EntityT
from repocache.persistence.repositories import SqlRepository
from repocache.persistence.tables import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.database_url,
            pool_pre_ping=True,
            echo=settings.db_echo,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the shared engine.

    Sessions keep loaded attributes after commit, since repositories map rows
    to entities after the transaction ends.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


def sql_repository_from_settings(
    table: type[Any], model: type[EntityT], soft_delete: bool = True
) -> SqlRepository[EntityT]:
    """Build a repository on the shared session factory."""
    return SqlRepository(table, model, get_session_factory(), soft_delete=soft_delete)


async def init_db() -> None:
    """Create missing tables registered on ``Base``; schemas are never altered."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine; the next ``get_engine`` call builds a new one."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
