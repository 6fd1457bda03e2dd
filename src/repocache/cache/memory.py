"""In-memory key-value cache.

Mimics the subset of Redis string semantics that cached services rely on
(SET with EX/PX/KEEPTTL, DEL, EXPIRE, INCRBY/DECRBY). Useful for unit tests
and single-process deployments without Redis.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from repocache.cache.protocol import SetMode


@dataclass
class MemoryEntry:
    """A stored value with optional expiration (clock seconds)."""

    value: str
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryKeyValueCache:
    """Dictionary-backed cache with lazy expiry.

    Args:
        clock: Monotonic time source in seconds; tests inject a fake one to
            move past TTLs without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._storage: dict[str, MemoryEntry] = {}
        self._clock = clock

    def _live(self, key: str) -> MemoryEntry | None:
        entry = self._storage.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._storage[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry.value if entry else None

    async def set(
        self,
        key: str,
        value: str,
        mode: SetMode = SetMode.EX,
        duration: int | None = None,
    ) -> bool:
        expires_at: float | None = None
        if mode is SetMode.KEEPTTL:
            current = self._live(key)
            expires_at = current.expires_at if current else None
        elif duration is not None:
            seconds = duration if mode is SetMode.EX else duration / 1000
            expires_at = self._clock() + seconds

        self._storage[key] = MemoryEntry(value=value, expires_at=expires_at)
        return True

    async def delete(self, key: str) -> int:
        if self._live(key) is None:
            return 0
        del self._storage[key]
        return 1

    async def expire(self, key: str, seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        entry.expires_at = self._clock() + seconds
        return True

    async def incr_by(self, key: str, increment: int) -> int:
        entry = self._live(key)
        try:
            current = int(entry.value) if entry else 0
        except ValueError as exc:
            raise ValueError(f"value at {key!r} is not an integer") from exc
        updated = current + increment
        self._storage[key] = MemoryEntry(
            value=str(updated), expires_at=entry.expires_at if entry else None
        )
        return updated

    async def decr_by(self, key: str, decrement: int) -> int:
        return await self.incr_by(key, -decrement)

    # Testing utilities

    def keys(self) -> list[str]:
        """Live keys (testing utility)."""
        return [key for key in list(self._storage) if self._live(key) is not None]

    def ttl(self, key: str) -> float | None:
        """Remaining lifetime in seconds; None for missing or persistent keys."""
        entry = self._live(key)
        if entry is None or entry.expires_at is None:
            return None
        return entry.expires_at - self._clock()
