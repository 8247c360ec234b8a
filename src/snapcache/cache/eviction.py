"""Eviction policy for the image cache.

Two independent passes decide what to evict: an age pass removing entries
older than the maximum age, then a size pass removing the oldest entries until
the total size fits. These functions only select keys; the cache manager
deletes the files and index entries.
"""

from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from snapcache.cache.index import CacheEntry


def total_size(entries: Iterable[CacheEntry]) -> int:
    """Sum the sizes of a collection of entries."""
    return sum(entry.size_bytes for entry in entries)


def is_expired(entry: CacheEntry, now: datetime, max_age_seconds: int) -> bool:
    """Check if an entry is older than the maximum age.

    Args:
        entry: Cache entry
        now: Current time (timezone-aware)
        max_age_seconds: Maximum entry age in seconds

    Returns:
        True if the entry should be evicted by age
    """
    return (now - entry.created_at).total_seconds() > max_age_seconds


def select_expired(
    entries: Mapping[str, CacheEntry], now: datetime, max_age_seconds: int
) -> List[str]:
    """Select keys of entries older than the maximum age."""
    return [
        key for key, entry in entries.items() if is_expired(entry, now, max_age_seconds)
    ]


def select_oversized(
    entries: Mapping[str, CacheEntry],
    max_total_size: int,
    protect: Optional[str] = None,
) -> List[str]:
    """Select the oldest entries to evict so the rest fit within max_total_size.

    Entries are evicted by creation time, ties broken by cache key.

    Args:
        entries: Entries remaining after the age pass
        max_total_size: Maximum total size in bytes
        protect: Key that is never selected, e.g. the entry just downloaded

    Returns:
        Keys to evict, oldest first (empty if already within bounds)
    """
    remaining = total_size(entries.values())
    if remaining <= max_total_size:
        return []

    ordered = sorted(entries.items(), key=lambda item: (item[1].created_at, item[0]))
    selected = []
    for key, entry in ordered:
        if remaining <= max_total_size:
            break
        if key == protect:
            continue
        selected.append(key)
        remaining -= entry.size_bytes
    return selected


def needs_cleanup(current_size: int, max_total_size: int, threshold: float) -> bool:
    """Check if the cache is full enough to sweep right after a download.

    Examples:
        >>> needs_cleanup(85, 100, 0.8)
        True
        >>> needs_cleanup(50, 100, 0.8)
        False
    """
    return current_size > max_total_size * threshold
