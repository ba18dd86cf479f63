"""
Tests for the key-value storage backends.
"""

import errno
import os

import pytest
from vinoscan.error_handling import QuotaExceededError
from vinoscan.storage import JsonFileStorage, MemoryStorage


class TestMemoryStorage:
    """Test the in-process backend."""

    def test_load_missing(self):
        """Unknown keys load as None."""
        assert MemoryStorage().load("cellar") is None

    def test_save_and_load(self):
        """Saved blobs are returned verbatim."""
        storage = MemoryStorage()
        storage.save("cellar", '{"version": 2}')
        assert storage.load("cellar") == '{"version": 2}'

    def test_quota(self):
        """Blobs over the quota are rejected and nothing is stored."""
        storage = MemoryStorage(quota_bytes=4)
        with pytest.raises(QuotaExceededError):
            storage.save("cellar", "12345")
        assert storage.load("cellar") is None

    def test_quota_counts_bytes(self):
        """The quota is measured in UTF-8 bytes, not characters."""
        storage = MemoryStorage(quota_bytes=4)
        with pytest.raises(QuotaExceededError):
            storage.save("cellar", "Rosé")


class TestJsonFileStorage:
    """Test the file-backed backend."""

    def test_round_trip(self, tmp_path):
        """A new instance reads what a previous one wrote."""
        JsonFileStorage(tmp_path).save("cellar", "[]")
        assert JsonFileStorage(tmp_path).load("cellar") == "[]"
        assert (tmp_path / "cellar.json").exists()

    def test_creates_directory(self, tmp_path):
        """Missing directories are created."""
        target = tmp_path / "nested" / "data"
        JsonFileStorage(target)
        assert target.is_dir()

    def test_load_missing(self, tmp_path):
        """No file means no blob."""
        assert JsonFileStorage(tmp_path).load("cellar") is None

    def test_key_sanitized(self, tmp_path):
        """Keys cannot escape the storage directory."""
        storage = JsonFileStorage(tmp_path)
        storage.save("../evil key", "x")
        assert storage.load("../evil key") == "x"
        assert sorted(p.name for p in tmp_path.iterdir()) == [".._evil_key.json"]

    def test_quota_keeps_previous_blob(self, tmp_path):
        """An oversized write leaves the old blob in place."""
        storage = JsonFileStorage(tmp_path, quota_bytes=10)
        storage.save("cellar", "old")
        with pytest.raises(QuotaExceededError):
            storage.save("cellar", "x" * 11)
        assert storage.load("cellar") == "old"

    def test_disk_full_maps_to_quota(self, tmp_path, monkeypatch):
        """ENOSPC from the filesystem is reported as a full store."""
        storage = JsonFileStorage(tmp_path)
        storage.save("cellar", "old")

        def full(src, dst):
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(os, "replace", full)
        with pytest.raises(QuotaExceededError):
            storage.save("cellar", "new")

        assert storage.load("cellar") == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["cellar.json"]
