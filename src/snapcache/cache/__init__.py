"""Local image cache.

This module provides a persistent, size- and age-bounded cache for remotely
hosted images, with deduplicated concurrent downloads and eviction.

Key components:
- ImageCache: Main cache interface
- CacheConfig: Configuration management
- CacheIndex: Persisted metadata for cached images
- CacheStore: Directory holding cached image files
"""

from snapcache.cache.config import CacheConfig
from snapcache.cache.errors import (
    CacheError,
    CorruptIndexError,
    FetchError,
    StaleEntryError,
    StorageError,
)
from snapcache.cache.index import CacheEntry, CacheIndex
from snapcache.cache.manager import CacheStats, ImageCache, PreloadResult
from snapcache.cache.storage import KeyValueStore
from snapcache.cache.store import CacheStore, FetchResult

__all__ = [
    "ImageCache",
    "CacheConfig",
    "CacheEntry",
    "CacheIndex",
    "CacheStore",
    "CacheStats",
    "FetchResult",
    "KeyValueStore",
    "PreloadResult",
    "CacheError",
    "CorruptIndexError",
    "FetchError",
    "StaleEntryError",
    "StorageError",
]
