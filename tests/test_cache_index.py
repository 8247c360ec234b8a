"""Unit tests for the cache index."""

from datetime import datetime, timedelta, timezone

import orjson
import pytest

from snapcache.cache.errors import CorruptIndexError
from snapcache.cache.index import INDEX_STORAGE_KEY, CacheEntry, CacheIndex
from snapcache.cache.storage import KeyValueStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_entry(key="k1", size=100, created_at=NOW):
    return CacheEntry(
        source=f"https://cdn.example.com/{key}.jpg",
        cache_key=key,
        local_path=f"/cache/{key}.jpg",
        size_bytes=size,
        created_at=created_at,
        last_accessed_at=created_at,
    )


@pytest.fixture
def kv_store(tmp_path):
    return KeyValueStore(tmp_path / "storage")


@pytest.fixture
def index(kv_store):
    return CacheIndex(kv_store)


class TestCacheEntry:
    """Test entry serialization."""

    def test_dict_round_trip(self):
        entry = make_entry()
        assert CacheEntry.from_dict(entry.to_dict()) == entry

    def test_timestamps_serialized_as_iso(self):
        data = make_entry().to_dict()
        assert data["created_at"] == "2026-03-01T12:00:00+00:00"

    def test_naive_timestamp_treated_as_utc(self):
        data = make_entry().to_dict()
        data["created_at"] = "2026-03-01T12:00:00"

        entry = CacheEntry.from_dict(data)

        assert entry.created_at == NOW

    def test_missing_content_type_defaults(self):
        data = make_entry().to_dict()
        del data["content_type"]

        assert CacheEntry.from_dict(data).content_type == "image/jpeg"

    @pytest.mark.parametrize(
        "field,value",
        [("size_bytes", -5), ("size_bytes", "big"), ("created_at", "yesterday")],
    )
    def test_malformed_fields(self, field, value):
        data = make_entry().to_dict()
        data[field] = value

        with pytest.raises(CorruptIndexError):
            CacheEntry.from_dict(data)

    def test_missing_field(self):
        data = make_entry().to_dict()
        del data["local_path"]

        with pytest.raises(CorruptIndexError):
            CacheEntry.from_dict(data)


class TestCacheIndex:
    """Test in-memory index operations."""

    def test_put_get_pop(self, index):
        entry = make_entry()
        index.put(entry)

        assert "k1" in index
        assert index.get("k1") is entry
        assert index.pop("k1") is entry
        assert index.get("k1") is None
        assert index.pop("k1") is None

    def test_total_size(self, index):
        index.put(make_entry("a", 10))
        index.put(make_entry("b", 32))

        assert len(index) == 2
        assert index.total_size() == 42

    def test_entries_is_a_snapshot(self, index):
        index.put(make_entry("a"))
        snapshot = index.entries()
        index.clear()

        assert list(snapshot) == ["a"]
        assert len(index) == 0


class TestIndexPersistence:
    """Test loading and saving the index."""

    def test_save_and_load(self, index, kv_store):
        index.put(make_entry("a", 10))
        index.put(make_entry("b", 20, NOW + timedelta(seconds=5)))
        index.save()

        reloaded = CacheIndex(kv_store)
        reloaded.load()

        assert reloaded.entries() == index.entries()

    def test_serialized_as_mapping(self, index, kv_store):
        index.put(make_entry("a"))
        index.save()

        data = orjson.loads(kv_store.get_item(INDEX_STORAGE_KEY))

        assert list(data) == ["a"]
        assert data["a"]["local_path"] == "/cache/a.jpg"

    def test_load_missing_index(self, index):
        index.load()
        assert len(index) == 0

    def test_load_corrupt_index(self, index, kv_store):
        kv_store.set_item(INDEX_STORAGE_KEY, "{not json")
        index.put(make_entry())

        index.load()

        assert len(index) == 0

    def test_load_index_with_bad_entry(self, index, kv_store):
        kv_store.set_item(INDEX_STORAGE_KEY, '{"a": {"source": "x"}}')
        index.load()
        assert len(index) == 0

    @pytest.mark.parametrize("raw", ["[]", "42", '{"a": 1}'])
    def test_from_json_rejects_wrong_shape(self, raw):
        with pytest.raises(CorruptIndexError):
            CacheIndex.from_json(raw)
