"""File-based persistent store.

Writes the document to a temporary sibling file and renames it over the
target, so a crash mid-write never leaves a truncated cache file behind.
"""

import json
import logging
from pathlib import Path
from typing import Any

from query_router.consts import UI_CACHE_FILE
from query_router.errors import CacheUnavailable
from query_router.storage.persistent.base import PersistentStore

logger = logging.getLogger(__name__)


class JsonFileStore(PersistentStore):
    """Persistent store backed by one JSON file."""

    def __init__(self, path: Path | str | None = None):
        """Initialize JsonFileStore.

        Args:
            path: Target file. Defaults to {DEFAULT_DATA_DIR}/cache/ui_cache.json.
        """
        self.path = Path(path) if path is not None else UI_CACHE_FILE

    def save(self, blob: dict[str, Any]) -> None:
        """Write the document atomically.

        Args:
            blob: JSON-serializable document.

        Raises:
            CacheUnavailable: On serialization or I/O failure.
        """
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            payload = json.dumps(blob, indent=2)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            raise CacheUnavailable(f"Failed to write {self.path}: {e}") from e
        logger.debug(f"Saved persistent cache to {self.path}")

    def load(self) -> dict[str, Any] | None:
        """Read the document.

        Returns:
            The stored document, or None if the file does not exist.

        Raises:
            CacheUnavailable: On I/O failure or malformed content.
        """
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CacheUnavailable(f"Failed to read {self.path}: {e}") from e

        if not isinstance(data, dict):
            msg = f"Unexpected document type in {self.path}: {type(data).__name__}"
            raise CacheUnavailable(msg)
        return data

    def clear(self) -> bool:
        """Remove the backing file.

        Returns:
            True if a file was removed, False if none existed.
        """
        if self.path.exists():
            self.path.unlink()
            return True
        return False


def main() -> None:
    """Example usage of JsonFileStore."""
    import tempfile

    logging.basicConfig(level=logging.DEBUG)

    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonFileStore(Path(tmpdir) / "ui_cache.json")

        print("=== JsonFileStore Example ===\n")
        print(f"1. Load before save: {store.load()}")

        store.save({"version": 1, "entries": {"sidebar": {"value": "collapsed"}}})
        print(f"2. Load after save: {store.load()}")

        print(f"3. Cleared: {store.clear()}")


if __name__ == "__main__":
    main()
