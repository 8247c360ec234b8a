"""Unit tests for the durable key-value store."""

import pytest

from snapcache.cache.storage import KeyValueStore


@pytest.fixture
def kv_store(tmp_path):
    return KeyValueStore(tmp_path / "storage")


class TestKeyValueStore:
    """Test key-value storage operations."""

    def test_missing_key_returns_none(self, kv_store):
        assert kv_store.get_item("image-cache-index") is None

    def test_set_and_get(self, kv_store):
        kv_store.set_item("image-cache-index", '{"a": 1}')
        assert kv_store.get_item("image-cache-index") == '{"a": 1}'

    def test_set_creates_directory(self, kv_store):
        assert not kv_store.directory.exists()
        kv_store.set_item("key", "value")
        assert kv_store.directory.is_dir()

    def test_overwrite(self, kv_store):
        kv_store.set_item("key", "first")
        kv_store.set_item("key", "second")
        assert kv_store.get_item("key") == "second"

    def test_no_temp_file_left_behind(self, kv_store):
        kv_store.set_item("key", "value")
        assert not list(kv_store.directory.glob("*.tmp"))

    def test_values_survive_new_instance(self, kv_store):
        kv_store.set_item("key", "persisted")
        assert KeyValueStore(kv_store.directory).get_item("key") == "persisted"

    def test_remove(self, kv_store):
        kv_store.set_item("key", "value")
        kv_store.remove_item("key")
        assert kv_store.get_item("key") is None

    def test_remove_missing_key(self, kv_store):
        kv_store.remove_item("never-written")
        kv_store.set_item("other", "value")
        kv_store.remove_item("never-written")

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", "with space"])
    def test_invalid_keys_rejected(self, kv_store, key):
        with pytest.raises(ValueError, match="Invalid storage key"):
            kv_store.set_item(key, "value")
