"""Utility functions for snapcache."""

import hashlib
import mimetypes
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import unquote, urlparse

DEFAULT_CONTENT_TYPE = "image/jpeg"
DEFAULT_SUFFIX = ".jpg"

_HTTP_PREFIXES = ("http://", "https://")
_OBJECT_STORAGE_PREFIXES = (
    "s3://",
    "gs://",
    "gcs://",
    "az://",
    "azure://",
)


def cache_key(source: str) -> str:
    """Derive the cache key for a source identifier.

    The key is the MD5 hex digest of the UTF-8 encoded identifier, so the same
    identifier always maps to the same key.

    Args:
        source: Remote URL or local file reference

    Returns:
        32-character hex string usable as a filename stem

    Examples:
        >>> cache_key('https://example.com/a.jpg') == cache_key('https://example.com/a.jpg')
        True
        >>> len(cache_key('https://example.com/a.jpg'))
        32
    """
    return hashlib.md5(source.encode("utf-8")).hexdigest()


def is_http_url(source: str) -> bool:
    """Check if an identifier is an HTTP(S) URL.

    Examples:
        >>> is_http_url('https://cdn.example.com/avatar.png')
        True
        >>> is_http_url('/data/photos/avatar.png')
        False
    """
    return source.lower().startswith(_HTTP_PREFIXES)


def is_object_storage_url(source: str) -> bool:
    """Check if an identifier points at cloud object storage.

    Examples:
        >>> is_object_storage_url('gs://bucket/stories/1.jpg')
        True
        >>> is_object_storage_url('https://example.com/1.jpg')
        False
    """
    return source.lower().startswith(_OBJECT_STORAGE_PREFIXES)


def is_remote(source: str) -> bool:
    """Check if an identifier must be fetched over the network."""
    return is_http_url(source) or is_object_storage_url(source)


def to_local_path(source: str) -> Path:
    """Convert a local identifier (plain path or ``file://`` URI) to a Path.

    Args:
        source: Local file reference

    Returns:
        Path to the referenced file

    Examples:
        >>> to_local_path('file:///tmp/photo.jpg')
        PosixPath('/tmp/photo.jpg')
        >>> to_local_path('/tmp/photo.jpg')
        PosixPath('/tmp/photo.jpg')
    """
    if source.lower().startswith("file://"):
        return Path(unquote(urlparse(source).path))
    return Path(source).expanduser()


def is_within(path: Union[str, Path], directories: Iterable[Union[str, Path]]) -> bool:
    """Check if a path lies inside any of the given directories.

    Both sides are resolved before comparing, so symlinked temp directories
    (e.g. ``/tmp`` -> ``/private/tmp``) still match.
    """
    try:
        resolved = Path(path).expanduser().resolve()
    except (OSError, RuntimeError):
        return False

    for directory in directories:
        try:
            root = Path(directory).expanduser().resolve()
        except (OSError, RuntimeError):
            continue
        if resolved == root or root in resolved.parents:
            return True
    return False


def guess_suffix(source: str) -> str:
    """Pick a file extension for a cached resource.

    Uses the extension of the identifier's path when it names a known image
    type, otherwise ``.jpg``.

    Examples:
        >>> guess_suffix('https://cdn.example.com/a/b.png?token=abc')
        '.png'
        >>> guess_suffix('https://picsum.photos/200/200')
        '.jpg'
    """
    path = urlparse(source).path if "://" in source else source
    suffix = Path(path).suffix.lower()
    mime_type, _ = mimetypes.guess_type(f"file{suffix}")
    if suffix and mime_type and mime_type.startswith("image/"):
        return suffix
    return DEFAULT_SUFFIX


def guess_content_type(filename: str, declared: Optional[str] = None) -> str:
    """Best-effort MIME type of a cached resource.

    Args:
        filename: Name of the cached file
        declared: Content-Type reported by the transport, if any

    Returns:
        MIME type string, ``image/jpeg`` when nothing better is known
    """
    if declared:
        declared = declared.split(";", 1)[0].strip().lower()
        if declared.startswith("image/"):
            return declared

    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type and mime_type.startswith("image/"):
        return mime_type
    return DEFAULT_CONTENT_TYPE


def format_size(size_bytes: int) -> str:
    """Format a byte count for display.

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(2048)
        '2.0 KB'
        >>> format_size(5 * 1024 * 1024)
        '5.0 MB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024**3:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes / 1024**3:.2f} GB"
