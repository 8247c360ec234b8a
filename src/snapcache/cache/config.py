"""Cache configuration management."""

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_ROOT = Path.home() / ".snapcache"


def _default_ephemeral_dirs() -> Tuple[Path, ...]:
    return (Path(tempfile.gettempdir()),)


@dataclass
class CacheConfig:
    """Configuration for the image cache.

    Attributes:
        cache_dir: Directory holding cached image files
        storage_dir: Directory of the durable key-value store holding the index.
            Kept outside cache_dir so clearing the cache never removes it.
        max_total_size: Maximum total size of cached files in bytes (100 MB)
        max_entry_age: Maximum age of an entry in seconds (30 days)
        compression_quality: Encoding quality for downloaded images (informational)
        cleanup_threshold: Fraction of max_total_size that triggers an eviction
            sweep right after a download
        preload_concurrency: Maximum number of concurrent preload downloads
        download_timeout: Transport timeout in seconds for a single download
        ephemeral_dirs: Directories the platform already manages as temporary
            storage; identifiers inside them are returned unchanged
    """

    cache_dir: Path = DEFAULT_ROOT / "image-cache"
    storage_dir: Path = DEFAULT_ROOT / "storage"
    max_total_size: int = 100 * 1024 * 1024  # 100 MB
    max_entry_age: int = 30 * 24 * 60 * 60  # 30 days
    compression_quality: float = 0.8
    cleanup_threshold: float = 0.8
    preload_concurrency: int = 3
    download_timeout: Optional[float] = 30.0
    ephemeral_dirs: Tuple[Path, ...] = field(default_factory=_default_ephemeral_dirs)

    def __post_init__(self):
        """Normalize paths and validate limits."""
        self.cache_dir = Path(self.cache_dir).expanduser()
        self.storage_dir = Path(self.storage_dir).expanduser()
        self.ephemeral_dirs = tuple(Path(d).expanduser() for d in self.ephemeral_dirs)

        if self.max_total_size <= 0:
            raise ValueError(f"max_total_size must be positive, got {self.max_total_size}")
        if self.max_entry_age <= 0:
            raise ValueError(f"max_entry_age must be positive, got {self.max_entry_age}")
        if not 0 < self.cleanup_threshold <= 1:
            raise ValueError(
                f"cleanup_threshold must be in (0, 1], got {self.cleanup_threshold}"
            )
        if self.preload_concurrency < 1:
            raise ValueError(
                f"preload_concurrency must be at least 1, got {self.preload_concurrency}"
            )
        storage = self.storage_dir.resolve()
        cache = self.cache_dir.resolve()
        if storage == cache or cache in storage.parents:
            raise ValueError(
                f"storage_dir {self.storage_dir} must be outside cache_dir {self.cache_dir}"
            )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance (defaults if the file does not exist)
        """
        if config_path is None:
            config_path = DEFAULT_ROOT / "config.json"

        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        if "ephemeral_dirs" in data:
            data["ephemeral_dirs"] = tuple(data["ephemeral_dirs"])

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = DEFAULT_ROOT / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "storage_dir": str(self.storage_dir),
            "max_total_size": self.max_total_size,
            "max_entry_age": self.max_entry_age,
            "compression_quality": self.compression_quality,
            "cleanup_threshold": self.cleanup_threshold,
            "preload_concurrency": self.preload_concurrency,
            "download_timeout": self.download_timeout,
            "ephemeral_dirs": [str(d) for d in self.ephemeral_dirs],
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            SNAPCACHE_DIR: Cache directory path
            SNAPCACHE_STORAGE_DIR: Index storage directory path
            SNAPCACHE_MAX_SIZE: Maximum total cache size in bytes
            SNAPCACHE_MAX_AGE: Maximum entry age in seconds
            SNAPCACHE_PRELOAD_CONCURRENCY: Concurrent preload downloads

        Returns:
            CacheConfig instance
        """
        kwargs = {}

        if os.getenv("SNAPCACHE_DIR"):
            kwargs["cache_dir"] = Path(os.getenv("SNAPCACHE_DIR"))

        if os.getenv("SNAPCACHE_STORAGE_DIR"):
            kwargs["storage_dir"] = Path(os.getenv("SNAPCACHE_STORAGE_DIR"))

        if os.getenv("SNAPCACHE_MAX_SIZE"):
            kwargs["max_total_size"] = int(os.getenv("SNAPCACHE_MAX_SIZE"))

        if os.getenv("SNAPCACHE_MAX_AGE"):
            kwargs["max_entry_age"] = int(os.getenv("SNAPCACHE_MAX_AGE"))

        if os.getenv("SNAPCACHE_PRELOAD_CONCURRENCY"):
            kwargs["preload_concurrency"] = int(os.getenv("SNAPCACHE_PRELOAD_CONCURRENCY"))

        return cls(**kwargs)
