"""Encoding of cached values.

A cached value is one of two variants:
- Direct: the full JSON snapshot of an entity, stored under its id key
- Pointer: "#refId_" followed by an entity id, stored under any other
  condition key and resolved through the id key
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

import orjson
from pydantic import BaseModel, ValidationError

POINTER_PREFIX = "#refId_"

ModelT = TypeVar("ModelT", bound=BaseModel)


class CacheEntryError(ValueError):
    """Raised when a cached value cannot be encoded or decoded."""


@dataclass(frozen=True)
class Pointer:
    """Reference to the direct entry of another entity."""

    ref_id: str


def encode_direct(entity: BaseModel) -> str:
    """Serialize an entity snapshot."""
    try:
        return orjson.dumps(entity.model_dump(mode="json")).decode()
    except (TypeError, orjson.JSONEncodeError) as exc:
        raise CacheEntryError(f"cannot serialize {type(entity).__name__}: {exc}") from exc


def encode_pointer(ref_id: str) -> str:
    return f"{POINTER_PREFIX}{ref_id}"


def decode_entry(raw: str | bytes, model: type[ModelT]) -> ModelT | Pointer:
    """Decode a cached value into an entity or a pointer."""
    try:
        text = raw.decode() if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as exc:
        raise CacheEntryError("cache entry is not UTF-8") from exc

    if text.startswith(POINTER_PREFIX):
        ref_id = text[len(POINTER_PREFIX) :]
        if not ref_id:
            raise CacheEntryError("pointer entry without an id")
        return Pointer(ref_id)

    try:
        return model.model_validate(orjson.loads(text))
    except orjson.JSONDecodeError as exc:
        raise CacheEntryError(f"invalid JSON in cache entry: {exc}") from exc
    except ValidationError as exc:
        raise CacheEntryError(f"cache entry is not a valid {model.__name__}") from exc
