"""Shared fixtures for snapcache tests."""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from snapcache.cache import CacheConfig, CacheStore, ImageCache


class FakeResponse:
    def __init__(self, status_code: int, payload: bytes, headers=None) -> None:
        self.status_code = status_code
        self.payload = payload
        self.headers = headers or {}

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def iter_content(self, chunk_size: int = 65536):
        for start in range(0, len(self.payload), chunk_size):
            yield self.payload[start : start + chunk_size]


class FakeSession:
    """Serves registered URLs; anything else is a 404.

    A route may map to bytes (200 response), an int status code, or an
    exception instance to raise.
    """

    def __init__(self, routes=None, content_type: str = "image/png") -> None:
        self.routes = dict(routes or {})
        self.content_type = content_type
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, stream=False, timeout=None):
        with self._lock:
            self.calls.append(url)
        outcome = self.routes.get(url, 404)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return FakeResponse(outcome, b"")
        return FakeResponse(200, outcome, {"Content-Type": self.content_type})

    def call_count(self, url) -> int:
        return self.calls.count(url)


class BlockingSession(FakeSession):
    """FakeSession whose downloads wait until release() is called."""

    def __init__(self, routes=None) -> None:
        super().__init__(routes)
        self.started = threading.Event()
        self._release = threading.Event()

    def release(self) -> None:
        self._release.set()

    def get(self, url, stream=False, timeout=None):
        self.started.set()
        self._release.wait(timeout=5)
        return super().get(url, stream=stream, timeout=timeout)


class FakeClock:
    """Clock advancing by `step` on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)) -> None:
        self.now = start or datetime.now(timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


UNREACHABLE = "https://invalid-host.example/image.jpg"


@pytest.fixture
def routes():
    return {
        "https://cdn.example.com/avatar.png": b"A" * 100,
        "https://cdn.example.com/story.jpg": b"B" * 250,
        "https://cdn.example.com/vibe.jpg": b"C" * 400,
        UNREACHABLE: RequestsConnectionError("Name or service not known"),
    }


@pytest.fixture
def session(routes):
    return FakeSession(routes)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_config(tmp_path):
    """Create test cache configuration."""
    return CacheConfig(
        cache_dir=tmp_path / "image-cache",
        storage_dir=tmp_path / "storage",
        max_total_size=10 * 1024,
        max_entry_age=3600,
        ephemeral_dirs=(tmp_path / "platform-cache",),
    )


@pytest.fixture
def make_cache(cache_config, session, clock):
    """Build an ImageCache sharing the test directories, session and clock."""

    def factory(config=None, http=None, now=None):
        config = config or cache_config
        store = CacheStore(config.cache_dir, session=http or session)
        return ImageCache(config, store=store, clock=now or clock)

    return factory


@pytest.fixture
def image_cache(make_cache):
    return make_cache()


@pytest.fixture
def session_cls():
    return FakeSession


@pytest.fixture
def blocking_session_cls():
    return BlockingSession
