"""
Cache abstraction layer for the Tag Taxonomy API.
Supports in-memory and Redis backends behind a read-through wrapper.
"""

from app.cache.base import CacheBackend, CacheUnavailableError
from app.cache.memory import InMemoryCacheBackend
from app.cache.keys import derive_cache_key, normalize_filters, scope_pattern
from app.cache.read_through import ReadThroughCache
from app.cache.factory import get_cache_backend, get_cache
from app.cache.invalidation import (
    commit_and_invalidate,
    defer_invalidation,
    discard_invalidations,
    has_pending_invalidations,
    invalidate_committed,
)

__all__ = [
    "CacheBackend",
    "CacheUnavailableError",
    "InMemoryCacheBackend",
    "ReadThroughCache",
    "derive_cache_key",
    "normalize_filters",
    "scope_pattern",
    "get_cache_backend",
    "get_cache",
    "commit_and_invalidate",
    "defer_invalidation",
    "discard_invalidations",
    "has_pending_invalidations",
    "invalidate_committed",
]
