"""Cache index: metadata for every cached resource."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import orjson

from snapcache.cache.errors import CorruptIndexError, StorageError
from snapcache.cache.storage import KeyValueStore

logger = logging.getLogger(__name__)

INDEX_STORAGE_KEY = "image-cache-index"


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    # Handle timezone-naive datetimes
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CacheEntry:
    """Metadata for one cached resource.

    Attributes:
        source: Remote URL or local URI the entry was created for
        cache_key: Key derived from source, used as the filename stem
        local_path: Absolute path of the cached file
        size_bytes: Size of the cached file at download time
        created_at: When the resource was first downloaded
        last_accessed_at: When the entry was last served from the cache
        content_type: Best-effort MIME type
    """

    source: str
    cache_key: str
    local_path: str
    size_bytes: int
    created_at: datetime
    last_accessed_at: datetime
    content_type: str = "image/jpeg"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "cache_key": self.cache_key,
            "local_path": self.local_path,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat(),
            "last_accessed_at": self.last_accessed_at.isoformat(),
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Build an entry from its serialized form.

        Raises:
            CorruptIndexError: If fields are missing or malformed
        """
        try:
            size_bytes = int(data["size_bytes"])
            if size_bytes < 0:
                raise ValueError(f"negative size {size_bytes}")
            return cls(
                source=str(data["source"]),
                cache_key=str(data["cache_key"]),
                local_path=str(data["local_path"]),
                size_bytes=size_bytes,
                created_at=_parse_timestamp(data["created_at"]),
                last_accessed_at=_parse_timestamp(data["last_accessed_at"]),
                content_type=str(data.get("content_type") or "image/jpeg"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptIndexError(f"Malformed cache entry: {e}") from e


class CacheIndex:
    """In-memory mapping from cache key to entry, persisted to a key-value store.

    The index is the authoritative catalog of what is cached. It is not
    thread-safe on its own; the owning ImageCache serializes access.
    """

    def __init__(self, kv_store: KeyValueStore, storage_key: str = INDEX_STORAGE_KEY):
        """Initialize an empty index.

        Args:
            kv_store: Durable store the index is loaded from and saved to
            storage_key: Key the serialized index is stored under
        """
        self.kv_store = kv_store
        self.storage_key = storage_key
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(list(self._entries.values()))

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, entry: CacheEntry) -> None:
        self._entries[entry.cache_key] = entry

    def pop(self, key: str) -> Optional[CacheEntry]:
        return self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> Dict[str, CacheEntry]:
        """Get a snapshot of all entries keyed by cache key."""
        return dict(self._entries)

    def total_size(self) -> int:
        return sum(entry.size_bytes for entry in self._entries.values())

    def to_json(self) -> bytes:
        """Serialize the index as a JSON object keyed by cache key."""
        return orjson.dumps({key: entry.to_dict() for key, entry in self._entries.items()})

    @staticmethod
    def from_json(raw: str) -> Dict[str, CacheEntry]:
        """Parse a serialized index.

        Args:
            raw: JSON text produced by to_json

        Returns:
            Mapping from cache key to entry

        Raises:
            CorruptIndexError: If the text is not a valid serialized index
        """
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CorruptIndexError(f"Cache index is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise CorruptIndexError(
                f"Cache index must be a JSON object, got {type(data).__name__}"
            )

        entries = {}
        for key, item in data.items():
            if not isinstance(item, dict):
                raise CorruptIndexError(f"Cache entry {key} is not an object")
            entries[key] = CacheEntry.from_dict(item)
        return entries

    def load(self) -> None:
        """Load the index from durable storage.

        A missing index starts empty. A corrupted index is logged and replaced
        by an empty one.
        """
        try:
            raw = self.kv_store.get_item(self.storage_key)
        except StorageError as e:
            logger.warning(f"Failed to read cache index, starting empty: {e}")
            self._entries = {}
            return

        if not raw:
            self._entries = {}
            return

        try:
            self._entries = self.from_json(raw)
        except CorruptIndexError as e:
            logger.warning(f"Discarding corrupted cache index: {e}")
            self._entries = {}
            return

        logger.debug(f"Loaded cache index with {len(self._entries)} entries")

    def save(self) -> None:
        """Persist the index to durable storage.

        Write failures are logged; the in-memory index stays authoritative.
        """
        try:
            self.kv_store.set_item(self.storage_key, self.to_json().decode("utf-8"))
        except StorageError as e:
            logger.warning(f"Failed to save cache index: {e}")
