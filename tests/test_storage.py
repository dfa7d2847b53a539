"""
Tests for the key/value storage backends.
"""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from quotesync.exceptions import StorageUnavailable
from quotesync.storage import InMemoryStorage, LocalDiskStorage


@pytest.fixture
def temp_storage():
    """Create a temporary disk storage instance."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield LocalDiskStorage(tmpdir)


class TestLocalDiskStorage:
    """Tests for LocalDiskStorage."""

    def test_get_missing_returns_none(self, temp_storage):
        assert temp_storage.get("quotes") is None

    def test_set_and_get(self, temp_storage):
        temp_storage.set("quotes", b"[1, 2, 3]")
        assert temp_storage.get("quotes") == b"[1, 2, 3]"

    def test_set_overwrites(self, temp_storage):
        temp_storage.set("quotes", b"old")
        temp_storage.set("quotes", b"new")
        assert temp_storage.get("quotes") == b"new"

    def test_one_file_per_key(self, temp_storage):
        temp_storage.set("quotes", b"[]")
        temp_storage.set("last_sync", b'"2024-01-01T00:00:00+00:00"')

        names = sorted(p.name for p in temp_storage.base_path.iterdir())
        assert names == ["last_sync.json", "quotes.json"]

    def test_no_temp_files_left_behind(self, temp_storage):
        temp_storage.set("quotes", b"[]")
        leftovers = [p for p in temp_storage.base_path.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_creates_missing_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            storage = LocalDiskStorage(Path(tmpdir) / "nested" / "data")
            storage.set("quotes", b"[]")
            assert storage.get("quotes") == b"[]"

    def test_remove(self, temp_storage):
        temp_storage.set("quotes", b"[]")
        temp_storage.remove("quotes")
        assert temp_storage.get("quotes") is None

    def test_remove_missing_is_noop(self, temp_storage):
        temp_storage.remove("quotes")

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
    def test_invalid_keys_rejected(self, temp_storage, key):
        with pytest.raises(ValueError):
            temp_storage.get(key)

    def test_write_failure_raises_storage_unavailable(self, temp_storage):
        with patch("quotesync.storage.tempfile.mkstemp", side_effect=OSError("disk full")):
            with pytest.raises(StorageUnavailable):
                temp_storage.set("quotes", b"[]")

    def test_read_failure_raises_storage_unavailable(self, temp_storage):
        temp_storage.set("quotes", b"[]")
        with patch("builtins.open", side_effect=PermissionError("denied")):
            with pytest.raises(StorageUnavailable):
                temp_storage.get("quotes")


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def test_roundtrip_and_remove(self):
        storage = InMemoryStorage()
        assert storage.get("quotes") is None

        storage.set("quotes", b"[]")
        assert "quotes" in storage
        assert storage.get("quotes") == b"[]"

        storage.remove("quotes")
        storage.remove("quotes")
        assert storage.get("quotes") is None

    def test_initial_values(self):
        storage = InMemoryStorage({"quotes": b"x"})
        assert storage.get("quotes") == b"x"
