"""Abstract base class for the persistent store behind a cache namespace.

The store holds a single JSON-compatible document (a "blob"). The cache
serializes the whole persisted namespace into it on every mutating write.
"""

from abc import ABC, abstractmethod
from typing import Any


class PersistentStore(ABC):
    """Abstract base class for blob stores.

    Implementations raise CacheUnavailable when the backing medium cannot be
    read or written. Callers treat that as non-fatal.
    """

    @abstractmethod
    def save(self, blob: dict[str, Any]) -> None:
        """Replace the stored document.

        Args:
            blob: JSON-serializable document.

        Raises:
            CacheUnavailable: If the document could not be written.
        """
        ...

    @abstractmethod
    def load(self) -> dict[str, Any] | None:
        """Load the stored document.

        Returns:
            The stored document, or None if nothing has been saved yet.

        Raises:
            CacheUnavailable: If the document exists but could not be read.
        """
        ...
