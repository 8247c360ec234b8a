"""Exceptions raised by the image cache."""

from typing import Optional


class CacheError(Exception):
    """Base exception for cache-related errors."""

    pass


class FetchError(CacheError):
    """Raised when a resource cannot be downloaded or copied into the cache."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class StorageError(CacheError):
    """Raised when a cache directory or file cannot be created or deleted."""

    pass


class CorruptIndexError(CacheError):
    """Raised when the persisted cache index cannot be parsed."""

    pass


class StaleEntryError(CacheError):
    """Raised when an index entry points at a file that no longer exists."""

    def __init__(self, cache_key: str, local_path: str):
        super().__init__(f"Cached file for {cache_key} is missing: {local_path}")
        self.cache_key = cache_key
        self.local_path = local_path
