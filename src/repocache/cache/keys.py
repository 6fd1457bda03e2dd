"""Cache key schema for entity lookups.

Key format: {prefix}|{field}_{value}|{field}_{value}...

Where:
- prefix: service namespace (app name + per-entity unique key)
- field/value: one segment per condition field, in the order the caller
  supplied them; values are rendered with ``str()``

Examples:
    build_key("shopusers", {"id": "42"})            -> "shopusers|id_42"
    build_key("shopusers", {"email": "a@x.com"})    -> "shopusers|email_a@x.com"
    build_key("shopusers", {"a": 1, "b": 2})        -> "shopusers|a_1|b_2"
    build_key("shopusers", {"b": 2, "a": 1})        -> "shopusers|b_2|a_1"
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from repocache.core.model import QueryCondition

SEGMENT_SEPARATOR = "|"
FIELD_SEPARATOR = "_"
ID_FIELD = "id"


def _fields(condition: QueryCondition, sort_fields: bool) -> Iterable[tuple[str, Any]]:
    if sort_fields:
        return sorted(condition.items(), key=lambda item: item[0])
    return condition.items()


def build_key(prefix: str, condition: QueryCondition, sort_fields: bool = False) -> str:
    """Derive the cache key for a query condition.

    Pure and total: an empty condition yields ``prefix`` itself, which callers
    must never read or write.
    """
    result = prefix
    for field, value in _fields(condition, sort_fields):
        result += f"{SEGMENT_SEPARATOR}{field}{FIELD_SEPARATOR}{value}"
    return result


def is_id_condition(condition: QueryCondition) -> bool:
    """True when the condition addresses an entity by id and nothing else."""
    return len(condition) == 1 and ID_FIELD in condition


def parse_key(prefix: str, key: str) -> list[tuple[str, str]] | None:
    """Split a key back into (field, value) segments.

    Values come back as strings. Returns None if the key doesn't start with
    the prefix. Field names containing "_" or values containing "|" are not
    recoverable; this is for diagnostics only.
    """
    if not key.startswith(prefix):
        return None

    rest = key[len(prefix) :]
    if not rest:
        return []
    if not rest.startswith(SEGMENT_SEPARATOR):
        return None

    segments: list[tuple[str, str]] = []
    for segment in rest[1:].split(SEGMENT_SEPARATOR):
        field, sep, value = segment.partition(FIELD_SEPARATOR)
        if not sep:
            return None
        segments.append((field, value))
    return segments


class CacheKeyBuilder:
    """Key generator bound to one service namespace."""

    def __init__(self, prefix: str = "", sort_fields: bool = False):
        self.prefix = prefix
        self.sort_fields = sort_fields

    def build(self, condition: QueryCondition) -> str:
        """Key for an arbitrary condition."""
        return build_key(self.prefix, condition, self.sort_fields)

    def for_id(self, entity_id: str) -> str:
        """Key holding the canonical (direct) copy of an entity."""
        return self.build({ID_FIELD: entity_id})

    def parse(self, key: str) -> list[tuple[str, str]] | None:
        return parse_key(self.prefix, key)
