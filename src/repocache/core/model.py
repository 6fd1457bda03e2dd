"""Entity and query result models shared by stores and services.

Entities are pydantic models so that cached snapshots can be validated back
into the caller's type. Every entity carries a stable string ``id``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Ordered field -> value mapping used both as a store filter and a cache key source
QueryCondition = Mapping[str, Any]


class BaseEntity(BaseModel):
    """Base class for cacheable application records."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    modified_by: str | None = None
    destroyed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


EntityT = TypeVar("EntityT", bound=BaseEntity)
ItemT = TypeVar("ItemT")


class UpdateOptions(BaseModel):
    """Options for find-and-modify style updates."""

    new: bool = True
    upsert: bool = False


class FindAllOptions(BaseModel):
    """Pagination, sort and field selection for ``find_all``.

    ``fields`` accepts a list or a space/comma separated string
    (``"name email"``). ``sort`` maps field names to 1 (ascending) or
    -1 (descending).
    """

    fields: list[str] | None = None
    limit: int = Field(default=20, ge=1)
    page: int = Field(default=1, ge=1)
    sort: dict[str, int] | None = None

    @field_validator("fields", mode="before")
    @classmethod
    def _split_fields(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part for part in value.replace(",", " ").split() if part]
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class FindAllResponse(BaseModel, Generic[ItemT]):
    """One page of results plus pagination totals."""

    total: int
    limit: int
    page: int
    total_pages: int
    data: list[ItemT]

    @classmethod
    def build(
        cls, data: list[ItemT], total: int, options: FindAllOptions
    ) -> "FindAllResponse[ItemT]":
        total_pages = math.ceil(total / options.limit) if total else 0
        return cls(
            total=total,
            limit=options.limit,
            page=options.page,
            total_pages=total_pages,
            data=data,
        )
