"""Content-addressed directory holding cached image bytes."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests
from requests.exceptions import RequestException

from snapcache.cache.errors import FetchError, StorageError
from snapcache.utils import (
    guess_content_type,
    guess_suffix,
    is_http_url,
    is_object_storage_url,
    to_local_path,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536
PART_SUFFIX = ".part"


@dataclass
class FetchResult:
    """Outcome of a successful fetch into the store."""

    path: Path
    size_bytes: int
    content_type: str


class CacheStore:
    """Manages cached files under a single root directory.

    Files are named ``{cache_key}{suffix}``. Every fetch writes to a ``.part``
    file first and renames it into place, so a crash never leaves a truncated
    file under its final name.
    """

    def __init__(
        self,
        root: Path,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 30.0,
    ):
        """Initialize cache store.

        Args:
            root: Directory holding cached files (created on demand)
            session: HTTP session used for downloads (a new one if None)
            timeout: Timeout in seconds for each HTTP download
        """
        self.root = Path(root)
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    def ensure_root(self) -> None:
        """Create the root directory if needed.

        Raises:
            StorageError: If the directory cannot be created
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create cache directory at {self.root}: {e}") from e

    def path_for(self, key: str, source: str) -> Path:
        """Get the path a resource is cached under."""
        return self.root / f"{key}{guess_suffix(source)}"

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def size_of(self, path: str) -> int:
        """Get the size of a stored file in bytes.

        Raises:
            StorageError: If the file cannot be stat'ed
        """
        try:
            return Path(path).stat().st_size
        except OSError as e:
            raise StorageError(f"Cannot stat {path}: {e}") from e

    def fetch(self, source: str, key: str) -> FetchResult:
        """Download or copy a resource into the store.

        Args:
            source: HTTP(S) URL, object storage URL, or local path/``file://`` URI
            key: Cache key naming the stored file

        Returns:
            FetchResult describing the stored file

        Raises:
            FetchError: If the resource cannot be retrieved or written
        """
        destination = self.path_for(key, source)
        temp_path = destination.with_suffix(destination.suffix + PART_SUFFIX)

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchError(
                f"Cannot create cache directory {self.root}: {e}", source
            ) from e

        try:
            if is_http_url(source):
                declared = self._download_http(source, temp_path)
            elif is_object_storage_url(source):
                declared = self._download_object(source, temp_path)
            else:
                declared = self._copy_local(source, temp_path)
            temp_path.replace(destination)
        except FetchError:
            temp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise FetchError(f"Cannot write cache file for {source}: {e}", source) from e

        try:
            size = self.size_of(str(destination))
        except StorageError as e:
            raise FetchError(f"Cannot stat cache file for {source}: {e}", source) from e
        return FetchResult(
            path=destination,
            size_bytes=size,
            content_type=guess_content_type(destination.name, declared),
        )

    def _download_http(self, url: str, temp_path: Path) -> Optional[str]:
        logger.info(f"Downloading image: {url}")
        try:
            with self._session.get(url, stream=True, timeout=self.timeout) as response:
                if not 200 <= response.status_code < 300:
                    raise FetchError(
                        f"Download failed with status {response.status_code}: {url}", url
                    )
                with temp_path.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
                return response.headers.get("Content-Type")
        except RequestException as e:
            raise FetchError(f"Download failed for {url}: {e}", url) from e

    def _download_object(self, url: str, temp_path: Path) -> Optional[str]:
        from cloudfiles import CloudFiles

        logger.info(f"Downloading object: {url}")
        dir_path, _, filename = url.rpartition("/")
        try:
            content = CloudFiles(dir_path).get(filename)
        except Exception as e:
            raise FetchError(f"Download failed for {url}: {e}", url) from e
        if content is None:
            raise FetchError(f"Object not found: {url}", url)

        temp_path.write_bytes(content)
        return None

    def _copy_local(self, source: str, temp_path: Path) -> Optional[str]:
        path = to_local_path(source)
        if not path.is_file():
            raise FetchError(f"Local file not found: {source}", source)

        logger.info(f"Copying local image: {path}")
        shutil.copyfile(path, temp_path)
        return None

    def delete_file(self, path: str) -> None:
        """Delete a cached file. A missing file is not an error.

        Raises:
            StorageError: If the file exists but cannot be deleted
        """
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete cache file {path}: {e}") from e

    def delete_all(self) -> None:
        """Delete the root directory and everything in it. Idempotent.

        Raises:
            StorageError: If the directory exists but cannot be removed
        """
        if not self.root.exists():
            return
        try:
            shutil.rmtree(self.root)
        except OSError as e:
            raise StorageError(f"Cannot delete cache directory {self.root}: {e}") from e
