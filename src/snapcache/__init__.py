"""snapcache: on-device cache for remotely hosted images."""

__version__ = "0.1.0"

from snapcache.cache import CacheConfig, FetchError, ImageCache

__all__ = ["ImageCache", "CacheConfig", "FetchError", "__version__"]
