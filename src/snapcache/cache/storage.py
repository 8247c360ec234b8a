"""Durable key-value storage backing the cache index."""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from snapcache.cache.errors import StorageError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


class KeyValueStore:
    """File-backed string key-value store.

    Each key is stored in its own file under ``directory``. Writes go to a
    temporary file that is renamed into place while holding a file lock, so
    readers never observe a half-written value and two processes sharing the
    directory never interleave writes.

    Examples:
        >>> store = KeyValueStore('/tmp/kv')
        >>> store.set_item('greeting', 'hello')
        >>> store.get_item('greeting')
        'hello'
    """

    def __init__(self, directory: Path, lock_timeout: float = 30):
        """Initialize key-value store.

        Args:
            directory: Directory holding one file per key (created on first write)
            lock_timeout: Seconds to wait for the write lock
        """
        self.directory = Path(directory)
        self.lock_timeout = lock_timeout

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def _lock(self, key: str) -> FileLock:
        return FileLock(str(self._path(key)) + ".lock", timeout=self.lock_timeout)

    def get_item(self, key: str) -> Optional[str]:
        """Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            Stored value, or None if the key has never been written
        """
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value.

        Args:
            key: Storage key
            value: Value to store

        Raises:
            StorageError: If the value cannot be written
        """
        path = self._path(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self._lock(key):
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, path)
        except Timeout as e:
            raise StorageError(f"Timeout acquiring lock for {path}") from e
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Cannot write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        """Remove a key. Removing a missing key is not an error."""
        path = self._path(key)
        if not self.directory.exists():
            return
        try:
            with self._lock(key):
                path.unlink(missing_ok=True)
        except Timeout as e:
            raise StorageError(f"Timeout acquiring lock for {path}") from e
        except OSError as e:
            raise StorageError(f"Cannot remove {path}: {e}") from e
