"""Core entity and query models."""

from repocache.core.model import (
    BaseEntity,
    EntityT,
    FindAllOptions,
    FindAllResponse,
    QueryCondition,
    UpdateOptions,
)

__all__ = [
    "BaseEntity",
    "EntityT",
    "FindAllOptions",
    "FindAllResponse",
    "QueryCondition",
    "UpdateOptions",
]
