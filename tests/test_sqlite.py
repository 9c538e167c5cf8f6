# tests/test_sqlite.py
"""Tests for the SQLite key-value store."""

import pytest

from stackscan.errors import StorageError, StorageQuotaExceededError
from stackscan.storage.sqlite import SQLiteKeyValueStore


class TestSQLiteKeyValueStore:
    def test_set_and_get(self, kv_store):
        kv_store.set("k", "value")
        assert kv_store.get("k") == "value"

    def test_get_not_found(self, kv_store):
        assert kv_store.get("missing") is None

    def test_set_replaces(self, kv_store):
        kv_store.set("k", "one")
        kv_store.set("k", "two")
        assert kv_store.get("k") == "two"

    def test_delete(self, kv_store):
        kv_store.set("k", "v")
        kv_store.delete("k")
        assert kv_store.get("k") is None

    def test_delete_missing_is_noop(self, kv_store):
        kv_store.delete("missing")

    def test_persists_to_file(self, tmp_path):
        path = str(tmp_path / "kv.db")
        SQLiteKeyValueStore(path).set("k", "v")
        assert SQLiteKeyValueStore(path).get("k") == "v"


class TestQuota:
    def test_write_within_quota(self):
        store = SQLiteKeyValueStore(":memory:", quota_chars=10)
        store.set("a", "x" * 10)
        assert store.get("a") == "x" * 10

    def test_write_over_quota_keeps_old_value(self):
        store = SQLiteKeyValueStore(":memory:", quota_chars=10)
        store.set("a", "old")
        with pytest.raises(StorageQuotaExceededError):
            store.set("a", "x" * 11)
        assert store.get("a") == "old"

    def test_quota_counts_other_keys(self):
        store = SQLiteKeyValueStore(":memory:", quota_chars=10)
        store.set("a", "x" * 6)
        with pytest.raises(StorageQuotaExceededError):
            store.set("b", "y" * 5)

    def test_replacing_key_frees_its_space(self):
        store = SQLiteKeyValueStore(":memory:", quota_chars=10)
        store.set("a", "x" * 8)
        store.set("a", "y" * 9)
        assert store.get("a") == "y" * 9

    def test_quota_error_is_storage_error(self):
        assert issubclass(StorageQuotaExceededError, StorageError)
