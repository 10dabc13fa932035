"""Abstract base class for namespaced cache backends.

Caches provide temporary storage partitioned into namespaces, each with its
own default TTL and capacity. Data may be evicted on TTL expiry, on capacity
pressure or through explicit invalidation.
"""

from abc import ABC, abstractmethod
from typing import Any


class Cache(ABC):
    """Abstract base class for namespaced cache implementations."""

    @abstractmethod
    def get(self, namespace: str, key: str) -> Any | None:
        """Get a value from the cache.

        Args:
            namespace: Namespace holding the value.
            key: Unique identifier within the namespace.

        Returns:
            Cached value if found and not expired, None otherwise.
        """
        ...

    @abstractmethod
    def set(self, namespace: str, key: str, value: Any, ttl: float | None = None) -> Any:
        """Store a value in the cache, overwriting any existing entry.

        Args:
            namespace: Namespace to store into.
            key: Unique identifier within the namespace.
            value: Value to cache.
            ttl: Time-to-live in seconds. None uses the namespace default.

        Returns:
            The stored value.
        """
        ...

    @abstractmethod
    def invalidate(self, namespace: str, key: str | None = None) -> int:
        """Remove one key, or every key of the namespace when key is None.

        Args:
            namespace: Namespace to invalidate in.
            key: Key to remove. None clears the namespace.

        Returns:
            Number of entries removed.
        """
        ...

    @abstractmethod
    def exists(self, namespace: str, key: str) -> bool:
        """Check if a key exists in the namespace and is not expired.

        Args:
            namespace: Namespace to look in.
            key: Unique identifier within the namespace.

        Returns:
            True if value exists and is valid, False otherwise.
        """
        ...
