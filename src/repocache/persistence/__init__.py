"""Persistence layer for repocache.

This module provides:
- Declarative base and the shared entity columns
- The store contract and its SQLAlchemy implementation
- A shared async engine for repositories built from settings
"""

from repocache.persistence.db import (
    close_db,
    get_engine,
    get_session_factory,
    init_db,
    sql_repository_from_settings,
)
from repocache.persistence.repositories import EntityRepository, SqlRepository
from repocache.persistence.tables import Base, EntityMixin

__all__ = [
    # Tables
    "Base",
    "EntityMixin",
    # Repositories
    "EntityRepository",
    "SqlRepository",
    # Engine
    "get_engine",
    "get_session_factory",
    "sql_repository_from_settings",
    "init_db",
    "close_db",
]
