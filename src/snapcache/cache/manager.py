"""Image cache manager: resolve identifiers to local files."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from typing_extensions import TypedDict

from snapcache.cache import eviction
from snapcache.cache.config import CacheConfig
from snapcache.cache.errors import (
    CacheError,
    FetchError,
    StaleEntryError,
    StorageError,
)
from snapcache.cache.index import CacheEntry, CacheIndex
from snapcache.cache.storage import KeyValueStore
from snapcache.cache.store import CacheStore
from snapcache.utils import cache_key, is_remote, is_within, to_local_path

logger = logging.getLogger(__name__)


class CacheStats(TypedDict):
    """Summary of cache contents."""

    entry_count: int
    total_size_bytes: int
    total_size_mb: float
    oldest_created_at: Optional[datetime]
    newest_created_at: Optional[datetime]


@dataclass
class PreloadResult:
    """Outcome of preloading one identifier."""

    source: str
    success: bool
    local_path: Optional[str] = None
    error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImageCache:
    """Persistent, size- and age-bounded cache for remote images.

    Resolves a remote URL or local file reference to a path on local disk,
    downloading and indexing it on a miss. The index is loaded lazily on first
    use. Index mutations are serialized by a single lock; downloads run outside
    it, and concurrent requests for the same resource share one download.

    Examples:
        >>> cache = ImageCache(CacheConfig(cache_dir='/tmp/images'))
        >>> path = cache.resolve('https://example.com/avatar.png')
        >>> cache.is_cached('https://example.com/avatar.png')
        True
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        store: Optional[CacheStore] = None,
        kv_store: Optional[KeyValueStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize image cache.

        Args:
            config: Cache configuration (defaults if None)
            store: Store for cached files (built from config if None)
            kv_store: Durable storage for the index (built from config if None)
            clock: Returns the current time; defaults to UTC now
        """
        self.config = config or CacheConfig()
        self.store = store or CacheStore(
            self.config.cache_dir, timeout=self.config.download_timeout
        )
        self.index = CacheIndex(kv_store or KeyValueStore(self.config.storage_dir))
        self._clock = clock or _utcnow
        self._lock = threading.RLock()
        self._in_flight: Dict[str, Future] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Create the cache directory, load the index and sweep old entries.

        Only the first call does any work.

        Raises:
            StorageError: If the cache directory cannot be created
        """
        with self._lock:
            if self._initialized:
                return

            self.store.ensure_root()
            self.index.load()
            self._sweep_locked()

            self._initialized = True
            logger.info(
                f"Image cache initialized at {self.store.root} ({len(self.index)} entries)"
            )

    # =========================================================================
    # Lookup
    # =========================================================================

    def _is_ephemeral(self, source: str) -> bool:
        if is_remote(source):
            return False
        return is_within(to_local_path(source), self.config.ephemeral_dirs)

    def _check_entry(self, key: str) -> CacheEntry:
        """Get a live entry.

        Raises:
            KeyError: If no entry exists for key
            StaleEntryError: If the entry's file has vanished
        """
        entry = self.index.get(key)
        if entry is None:
            raise KeyError(key)
        if not self.store.exists(entry.local_path):
            raise StaleEntryError(key, entry.local_path)
        return entry

    def _lookup_locked(self, key: str, touch: bool) -> Optional[CacheEntry]:
        """Find a live entry, purging it if stale. Caller holds the lock."""
        try:
            entry = self._check_entry(key)
        except KeyError:
            return None
        except StaleEntryError as e:
            logger.info(f"Removing stale cache entry: {e}")
            self.index.pop(key)
            self.index.save()
            return None

        if touch:
            entry.last_accessed_at = self._clock()
            self.index.save()
        return entry

    def _validate_source(self, source: str) -> None:
        if not isinstance(source, str) or not source.strip():
            raise ValueError(f"Source identifier must be a non-empty string, got {source!r}")

    def resolve(self, source: str) -> str:
        """Get a local path for an image, downloading it on a cache miss.

        Identifiers inside a platform temporary directory are returned as-is.

        Args:
            source: Remote URL or local file reference

        Returns:
            Local path of the cached image

        Raises:
            ValueError: If source is empty
            FetchError: If the image cannot be downloaded or copied
            StorageError: If the cache directory cannot be created
        """
        self._validate_source(source)
        self.initialize()

        if self._is_ephemeral(source):
            return source

        key = cache_key(source)
        with self._lock:
            entry = self._lookup_locked(key, touch=True)
            if entry is not None:
                return entry.local_path

            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            logger.debug(f"Waiting for in-flight download of {source}")
            return future.result()

        try:
            local_path = self._fetch_and_cache(source, key)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(local_path)
            return local_path
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def _fetch_and_cache(self, source: str, key: str) -> str:
        try:
            result = self.store.fetch(source, key)
        except FetchError as e:
            logger.error(f"Failed to cache image {source}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error caching {source}: {e}")
            raise FetchError(f"Unexpected error caching {source}: {e}", source) from e

        if result.size_bytes > self.config.max_total_size:
            self._delete_file(str(result.path))
            raise FetchError(
                f"Image {source} ({result.size_bytes} bytes) exceeds the cache size "
                f"limit ({self.config.max_total_size} bytes)",
                source,
            )

        with self._lock:
            now = self._clock()
            entry = CacheEntry(
                source=source,
                cache_key=key,
                local_path=str(result.path.resolve()),
                size_bytes=result.size_bytes,
                created_at=now,
                last_accessed_at=now,
                content_type=result.content_type,
            )
            self.index.put(entry)
            self.index.save()
            if eviction.needs_cleanup(
                self.index.total_size(),
                self.config.max_total_size,
                self.config.cleanup_threshold,
            ):
                self._sweep_locked(protect=key)

        logger.info(f"Image cached: {source} ({result.size_bytes / 1024:.1f}KB)")
        return entry.local_path

    def is_cached(self, source: str) -> bool:
        """Check if an image is cached and its file still exists.

        Never raises and never modifies the cache.
        """
        try:
            self._validate_source(source)
            self.initialize()
            with self._lock:
                self._check_entry(cache_key(source))
            return True
        except (KeyError, ValueError, CacheError, OSError):
            return False

    def cached_path(self, source: str) -> Optional[str]:
        """Get the local path of a cached image without downloading it.

        A stale entry is removed from the index.

        Returns:
            Local path, or None if the image is not cached
        """
        self._validate_source(source)
        self.initialize()
        with self._lock:
            entry = self._lookup_locked(cache_key(source), touch=False)
        return entry.local_path if entry else None

    def filter_cached(self, sources: Iterable[str]) -> List[str]:
        """Get the identifiers that are currently cached, in input order."""
        return [source for source in sources if self.is_cached(source)]

    # =========================================================================
    # Preloading
    # =========================================================================

    def _preload_one(self, source: str) -> PreloadResult:
        try:
            return PreloadResult(source=source, success=True, local_path=self.resolve(source))
        except (CacheError, ValueError) as e:
            logger.warning(f"Preload failed for {source}: {e}")
            return PreloadResult(source=source, success=False, error=str(e))

    def preload(self, sources: Iterable[str]) -> List[PreloadResult]:
        """Download every image that is not cached yet.

        At most ``config.preload_concurrency`` downloads run at once. A failure
        for one identifier is logged and reported in its result; it never stops
        the batch.

        Args:
            sources: Identifiers to preload

        Returns:
            One PreloadResult per input identifier, in input order
        """
        sources = list(sources)
        if not sources:
            return []

        results: Dict[str, PreloadResult] = {}
        pending = []
        for source in dict.fromkeys(sources):
            path = None
            try:
                path = self.cached_path(source)
            except (CacheError, ValueError) as e:
                results[source] = PreloadResult(source=source, success=False, error=str(e))
                continue
            if path is not None:
                results[source] = PreloadResult(source=source, success=True, local_path=path)
            else:
                pending.append(source)

        if not pending:
            logger.info("All images already cached")
        else:
            logger.info(f"Preloading {len(pending)} images...")
            with ThreadPoolExecutor(
                max_workers=self.config.preload_concurrency,
                thread_name_prefix="snapcache-preload",
            ) as executor:
                for result in executor.map(self._preload_one, pending):
                    results[result.source] = result

            failed = sum(1 for source in pending if not results[source].success)
            logger.info(
                f"Image preloading completed: {len(pending) - failed} cached, {failed} failed"
            )

        return [results[source] for source in sources]

    # =========================================================================
    # Eviction and maintenance
    # =========================================================================

    def _delete_file(self, path: str) -> None:
        try:
            self.store.delete_file(path)
        except StorageError as e:
            logger.warning(f"Failed to delete cache file: {e}")

    def _evict_locked(self, key: str) -> None:
        entry = self.index.pop(key)
        if entry is not None:
            self._delete_file(entry.local_path)

    def _sweep_locked(self, protect: Optional[str] = None) -> int:
        """Evict expired entries, then the oldest entries until within size.

        Caller holds the lock. Persists the index once at the end. The entry
        under ``protect`` is never chosen by the size pass.
        """
        now = self._clock()

        expired = eviction.select_expired(
            self.index.entries(), now, self.config.max_entry_age
        )
        for key in expired:
            self._evict_locked(key)

        oversized = eviction.select_oversized(
            self.index.entries(), self.config.max_total_size, protect=protect
        )
        for key in oversized:
            self._evict_locked(key)

        self.index.save()

        evicted = len(expired) + len(oversized)
        if evicted:
            logger.info(
                f"Evicted {len(expired)} expired and {len(oversized)} oversized cache entries"
            )
        return evicted

    def sweep(self) -> int:
        """Run the eviction policy now.

        Returns:
            Number of entries evicted
        """
        self.initialize()
        with self._lock:
            return self._sweep_locked()

    def remove(self, source: str) -> bool:
        """Remove one image from the cache.

        Returns:
            True if an entry was removed
        """
        self._validate_source(source)
        self.initialize()
        key = cache_key(source)
        with self._lock:
            if key not in self.index:
                return False
            self._evict_locked(key)
            self.index.save()
        return True

    def clear(self) -> None:
        """Delete every cached file and empty the index."""
        with self._lock:
            try:
                self.store.delete_all()
            except StorageError as e:
                logger.warning(f"Failed to delete cache directory: {e}")
            self.index.clear()
            self.index.save()
        logger.info("Image cache cleared")

    def stats(self) -> CacheStats:
        """Get cache statistics.

        Returns:
            CacheStats dict; timestamps are None when the cache is empty
        """
        self.initialize()
        with self._lock:
            entries = list(self.index)

        total = eviction.total_size(entries)
        created = [entry.created_at for entry in entries]
        return CacheStats(
            entry_count=len(entries),
            total_size_bytes=total,
            total_size_mb=total / (1024 * 1024),
            oldest_created_at=min(created) if created else None,
            newest_created_at=max(created) if created else None,
        )

    def get_entry(self, source: str) -> Optional[CacheEntry]:
        """Get the index entry for an identifier without touching it."""
        self._validate_source(source)
        self.initialize()
        with self._lock:
            return self.index.get(cache_key(source))
