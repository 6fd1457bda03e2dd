"""Global pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from repocache.cache.memory import MemoryKeyValueCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock: FakeClock) -> MemoryKeyValueCache:
    """In-memory cache driven by the fake clock."""
    return MemoryKeyValueCache(clock=clock)
