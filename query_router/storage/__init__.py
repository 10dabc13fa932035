"""Storage backends for routing decisions.

This module provides:
- Cache: Abstract base class for namespaced caches
- TieredCache: In-memory namespaced cache with TTL, eviction and stale-while-revalidate
- CacheSweeper: Background task purging expired entries
- PersistentStore: Abstract base class for the persisted namespace's backing store
- JsonFileStore: File-based persistent store
"""

from query_router.storage.cache.base import Cache
from query_router.storage.cache.sweeper import CacheSweeper
from query_router.storage.cache.tiered_cache import TieredCache, default_namespaces
from query_router.storage.persistent.base import PersistentStore
from query_router.storage.persistent.json_store import JsonFileStore

__all__ = [
    "Cache",
    "CacheSweeper",
    "JsonFileStore",
    "PersistentStore",
    "TieredCache",
    "default_namespaces",
]
