"""Key-value cache contract consumed by cached services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class SetMode(str, Enum):
    """Expiry mode for ``KeyValueCache.set``."""

    EX = "EX"  # duration in seconds
    PX = "PX"  # duration in milliseconds
    KEEPTTL = "KEEPTTL"  # retain the key's current expiry


@runtime_checkable
class KeyValueCache(Protocol):
    """Async string cache with per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(
        self,
        key: str,
        value: str,
        mode: SetMode = SetMode.EX,
        duration: int | None = None,
    ) -> bool: ...

    async def delete(self, key: str) -> int: ...

    async def expire(self, key: str, seconds: int) -> bool: ...

    async def incr_by(self, key: str, increment: int) -> int: ...

    async def decr_by(self, key: str, decrement: int) -> int: ...


@dataclass(frozen=True)
class ServiceCache:
    """Cache wiring for one entity service.

    The key namespace is ``app_name + unique_key``; with an empty
    ``app_name`` the namespace is empty.
    """

    app_name: str
    unique_key: str
    cache: KeyValueCache
    ttl: int
    sort_fields: bool = False

    @property
    def prefix(self) -> str:
        return self.app_name + self.unique_key if self.app_name else ""
