"""Entity services layered over the store and the cache."""

from repocache.services.base import CachedEntityService

__all__ = ["CachedEntityService"]
