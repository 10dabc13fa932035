"""In-memory namespaced cache with TTL, eviction and stale-while-revalidate.

Three independent namespaces share one TieredCache instance:

    llm   long TTL, expensive classification / automation results
    data  short TTL, API data
    ui    long TTL, UI state mirrored to a PersistentStore

Each namespace has its own lock, so a `set` is visible to every `get` on the
same namespace issued after it returns. Nothing is ordered across namespaces.
"""

import asyncio
import logging
import math
import threading
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from query_router.consts import (
    CACHE_REVALIDATE_FRACTION,
    DATA_CACHE_MAX_ENTRIES,
    DATA_CACHE_TTL,
    DATA_NAMESPACE,
    LLM_CACHE_MAX_ENTRIES,
    LLM_CACHE_TTL,
    LLM_NAMESPACE,
    UI_CACHE_MAX_ENTRIES,
    UI_CACHE_TTL,
    UI_NAMESPACE,
)
from query_router.errors import CacheUnavailable
from query_router.models.common import _utc_now
from query_router.models.model_cache import CacheEntry, NamespaceConfig
from query_router.storage.cache.base import Cache
from query_router.storage.persistent.base import PersistentStore

logger = logging.getLogger(__name__)

PERSISTED_FORMAT_VERSION = 1


def default_namespaces() -> list[NamespaceConfig]:
    """Return the three standard namespace configurations."""
    return [
        NamespaceConfig(
            name=LLM_NAMESPACE,
            default_ttl=LLM_CACHE_TTL,
            max_entries=LLM_CACHE_MAX_ENTRIES,
        ),
        NamespaceConfig(
            name=DATA_NAMESPACE,
            default_ttl=DATA_CACHE_TTL,
            max_entries=DATA_CACHE_MAX_ENTRIES,
        ),
        NamespaceConfig(
            name=UI_NAMESPACE,
            default_ttl=UI_CACHE_TTL,
            max_entries=UI_CACHE_MAX_ENTRIES,
            persistent=True,
        ),
    ]


def eviction_score(entry: CacheEntry, now: datetime) -> float:
    """Score used to pick an eviction victim: age in hours minus ln(access_count + 1)."""
    age_hours = (now - entry.inserted_at).total_seconds() / 3600
    return age_hours - math.log(entry.access_count + 1)


class TieredCache(Cache):
    """Namespaced in-memory cache.

    Features:
    - Per-namespace default TTL and capacity
    - Score-based eviction before inserting into a full namespace
    - Stale-while-revalidate reads with background refresh
    - Sweep of expired entries (driven by CacheSweeper)
    - Mirroring of persistent namespaces to a PersistentStore
    """

    def __init__(
        self,
        namespaces: Iterable[NamespaceConfig] | None = None,
        store: PersistentStore | None = None,
        clock: Callable[[], datetime] = _utc_now,
        load_persisted: bool = True,
    ):
        """Initialize TieredCache.

        Args:
            namespaces: Overrides for the standard namespaces, matched by name.
            store: Backing store for persistent namespaces. None keeps everything in memory.
            clock: Returns the current timezone-aware time.
            load_persisted: Rehydrate persistent namespaces from the store on startup.

        Raises:
            ValueError: If an override names an unknown namespace.
        """
        configs = {config.name: config for config in default_namespaces()}
        for override in namespaces or []:
            if override.name not in configs:
                msg = f"Unknown cache namespace: {override.name}"
                raise ValueError(msg)
            configs[override.name] = override

        self._configs = configs
        self._entries: dict[str, dict[str, CacheEntry]] = {name: {} for name in configs}
        self._locks = {name: threading.RLock() for name in configs}
        self._store = store
        self._clock = clock
        self._revalidations: dict[tuple[str, str], asyncio.Task[None]] = {}

        if store is not None and load_persisted:
            self.load_persisted()

    # === NAMESPACE HELPERS ===

    @property
    def namespaces(self) -> list[str]:
        """Names of all namespaces."""
        return list(self._configs)

    def config(self, namespace: str) -> NamespaceConfig | None:
        """Get the configuration of a namespace."""
        return self._configs.get(namespace)

    def _known(self, namespace: str) -> bool:
        if namespace in self._configs:
            return True
        logger.warning(f"Cache namespace {namespace} does not exist")
        return False

    # === READS ===

    def _get_entry(self, namespace: str, key: str) -> CacheEntry | None:
        """Look up a live entry and record the access. Expired entries are purged."""
        if not self._known(namespace):
            return None

        now = self._clock()
        with self._locks[namespace]:
            entries = self._entries[namespace]
            entry = entries.get(key)
            if entry is None:
                return None

            if entry.is_expired(now):
                del entries[key]
                logger.debug(f"Cache expired for key={key} in namespace={namespace}")
                self._persist_locked(namespace)
                return None

            entry.access_count += 1
            entry.last_accessed = now
            return entry

    def get(self, namespace: str, key: str) -> Any | None:
        """Get a value from the cache.

        Args:
            namespace: Namespace holding the value.
            key: Unique identifier within the namespace.

        Returns:
            Cached value if found and not expired, None otherwise.
        """
        entry = self._get_entry(namespace, key)
        return entry.value if entry is not None else None

    def exists(self, namespace: str, key: str) -> bool:
        """Check if a live entry exists without counting it as an access."""
        if not self._known(namespace):
            return False
        with self._locks[namespace]:
            entry = self._entries[namespace].get(key)
            return entry is not None and not entry.is_expired(self._clock())

    async def get_with_revalidate(
        self,
        namespace: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Read through the cache with stale-while-revalidate semantics.

        On a hit whose age has reached 75% of its TTL window, `fetch` is
        re-run in a background task that overwrites the entry; the current
        value is returned without waiting. On a miss, `fetch` is awaited,
        stored and returned.

        Args:
            namespace: Namespace holding the value.
            key: Unique identifier within the namespace.
            fetch: Coroutine factory producing a fresh value.
            ttl: TTL for stored values. None uses the namespace default.

        Returns:
            Cached (possibly stale) or freshly fetched value.

        Raises:
            Exception: Whatever `fetch` raises on a miss.
        """
        entry = self._get_entry(namespace, key)
        if entry is not None:
            elapsed = (self._clock() - entry.inserted_at).total_seconds()
            if elapsed >= entry.ttl_seconds * CACHE_REVALIDATE_FRACTION:
                self._schedule_revalidation(namespace, key, fetch, ttl)
            logger.debug(f"Cache hit for key={key} in namespace={namespace}")
            return entry.value

        logger.debug(f"Cache miss for key={key} in namespace={namespace}")
        fresh = await fetch()
        self.set(namespace, key, fresh, ttl)
        return fresh

    # === BACKGROUND REVALIDATION ===

    def _schedule_revalidation(
        self,
        namespace: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: float | None,
    ) -> None:
        """Start a background refresh unless one is already running for this key."""
        task_key = (namespace, key)
        running = self._revalidations.get(task_key)
        if running is not None and not running.done():
            return

        task = asyncio.create_task(self._revalidate(namespace, key, fetch, ttl))
        self._revalidations[task_key] = task
        task.add_done_callback(lambda done: self._forget_revalidation(task_key, done))
        logger.debug(f"Scheduled revalidation for key={key} in namespace={namespace}")

    def _forget_revalidation(self, task_key: tuple[str, str], task: asyncio.Task[None]) -> None:
        # A newer task may already be registered under the same key
        if self._revalidations.get(task_key) is task:
            del self._revalidations[task_key]

    async def _revalidate(
        self,
        namespace: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: float | None,
    ) -> None:
        """Refresh one entry. Failures keep the stale value."""
        try:
            fresh = await fetch()
        except Exception as e:
            logger.warning(f"Background revalidation failed for key={key} in {namespace}: {e}")
            return
        self.set(namespace, key, fresh, ttl)

    @property
    def pending_revalidations(self) -> int:
        """Number of background refreshes still running."""
        return sum(1 for task in self._revalidations.values() if not task.done())

    async def drain(self) -> None:
        """Wait for all in-flight background revalidations to finish."""
        pending = [task for task in self._revalidations.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # === WRITES ===

    def set(self, namespace: str, key: str, value: Any, ttl: float | None = None) -> Any:
        """Store a value, evicting one entry first if the namespace is full.

        Args:
            namespace: Namespace to store into.
            key: Unique identifier within the namespace.
            value: Value to cache.
            ttl: Time-to-live in seconds. None uses the namespace default.

        Returns:
            The stored value.

        Raises:
            ValueError: If ttl is not positive.
        """
        if not self._known(namespace):
            return value

        config = self._configs[namespace]
        effective_ttl = ttl if ttl is not None else config.default_ttl
        if effective_ttl <= 0:
            msg = f"TTL must be positive, got {effective_ttl}"
            raise ValueError(msg)

        now = self._clock()
        with self._locks[namespace]:
            entries = self._entries[namespace]
            if key not in entries and len(entries) >= config.max_entries:
                self._evict_locked(namespace, now)

            entries[key] = CacheEntry(
                value=value,
                inserted_at=now,
                expires_at=now + timedelta(seconds=effective_ttl),
            )
            self._persist_locked(namespace)

        logger.debug(f"Cached key={key} in namespace={namespace} (ttl={effective_ttl}s)")
        return value

    def invalidate(self, namespace: str, key: str | None = None) -> int:
        """Remove one key, or clear the namespace when key is None.

        Args:
            namespace: Namespace to invalidate in.
            key: Key to remove. None clears the namespace.

        Returns:
            Number of entries removed.
        """
        if not self._known(namespace):
            return 0

        with self._locks[namespace]:
            entries = self._entries[namespace]
            if key is not None:
                removed = 1 if entries.pop(key, None) is not None else 0
            else:
                removed = len(entries)
                entries.clear()
                logger.info(f"Cleared {removed} entries from namespace={namespace}")
            self._persist_locked(namespace)
        return removed

    def evict_one(self, namespace: str) -> str | None:
        """Evict the lowest-scoring entry of a namespace.

        Args:
            namespace: Namespace to evict from.

        Returns:
            The evicted key, or None if the namespace was empty.
        """
        if not self._known(namespace):
            return None

        with self._locks[namespace]:
            evicted = self._evict_locked(namespace, self._clock())
            if evicted is not None:
                self._persist_locked(namespace)
            return evicted

    def _evict_locked(self, namespace: str, now: datetime) -> str | None:
        entries = self._entries[namespace]
        victim: str | None = None
        lowest = math.inf
        for key, entry in entries.items():
            score = eviction_score(entry, now)
            if score < lowest:
                lowest = score
                victim = key

        if victim is not None:
            del entries[victim]
            logger.debug(f"Evicted key={victim} from namespace={namespace} (score={lowest:.3f})")
        return victim

    # === SWEEP ===

    def sweep(self) -> int:
        """Purge expired entries in every namespace.

        Returns:
            Number of entries purged.
        """
        now = self._clock()
        purged = 0
        for namespace in self._configs:
            with self._locks[namespace]:
                entries = self._entries[namespace]
                expired = [key for key, entry in entries.items() if entry.is_expired(now)]
                for key in expired:
                    del entries[key]
                purged += len(expired)
                self._persist_locked(namespace)

        if purged:
            logger.debug(f"Sweep purged {purged} expired entries")
        return purged

    # === PERSISTENCE ===

    def _persist_locked(self, namespace: str) -> None:
        """Mirror a persistent namespace to the store. Caller holds the namespace lock."""
        if self._store is None or not self._configs[namespace].persistent:
            return

        now = self._clock()
        try:
            blob = {
                "version": PERSISTED_FORMAT_VERSION,
                "namespace": namespace,
                "entries": {
                    key: entry.model_dump(mode="json")
                    for key, entry in self._entries[namespace].items()
                    if not entry.is_expired(now)
                },
            }
            self._store.save(blob)
        except (CacheUnavailable, ValueError) as e:
            logger.warning(f"Failed to persist namespace={namespace}: {e}")

    def load_persisted(self) -> int:
        """Rehydrate persistent namespaces from the store, skipping expired entries.

        Returns:
            Number of entries loaded.
        """
        if self._store is None:
            return 0

        try:
            blob = self._store.load()
        except CacheUnavailable as e:
            logger.warning(f"Failed to load persisted cache: {e}")
            return 0

        if not blob:
            return 0

        namespace = blob.get("namespace")
        config = self._configs.get(namespace) if isinstance(namespace, str) else None
        if config is None or not config.persistent:
            logger.warning(f"Ignoring persisted cache for namespace={namespace}")
            return 0

        now = self._clock()
        loaded = 0
        with self._locks[config.name]:
            entries = self._entries[config.name]
            for key, data in (blob.get("entries") or {}).items():
                try:
                    entry = CacheEntry.model_validate(data)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed persisted entry {key}: {e}")
                    continue
                if entry.is_expired(now):
                    continue
                entries[key] = entry
                loaded += 1

            while len(entries) > config.max_entries:
                self._evict_locked(config.name, now)
                loaded -= 1

        logger.info(f"Loaded {loaded} persisted entries into namespace={config.name}")
        return loaded

    # === INSPECTION ===

    def size(self, namespace: str) -> int:
        """Number of stored entries, including expired ones not yet purged."""
        if not self._known(namespace):
            return 0
        with self._locks[namespace]:
            return len(self._entries[namespace])

    def keys(self, namespace: str) -> list[str]:
        """Keys of live entries in a namespace."""
        if not self._known(namespace):
            return []
        now = self._clock()
        with self._locks[namespace]:
            return [
                key for key, entry in self._entries[namespace].items() if not entry.is_expired(now)
            ]

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with stats per namespace.
        """
        now = self._clock()
        stats: dict[str, Any] = {"namespaces": {}}
        for namespace, config in self._configs.items():
            with self._locks[namespace]:
                entries = list(self._entries[namespace].values())
            expired = sum(1 for entry in entries if entry.is_expired(now))
            stats["namespaces"][namespace] = {
                "total_entries": len(entries),
                "expired_entries": expired,
                "valid_entries": len(entries) - expired,
                "max_entries": config.max_entries,
                "default_ttl": config.default_ttl,
                "persistent": config.persistent,
            }
        return stats
