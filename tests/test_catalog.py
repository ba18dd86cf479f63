"""
Tests for CatalogStore.

Covers the entry lifecycle, persistence sync, legacy migration and the
storage failure policy.
"""

import json

import pytest
from vinoscan.catalog import CatalogStore, decode_catalog, encode_catalog
from vinoscan.error_handling import (
    CsvImportError,
    DuplicateEntryError,
    EntryNotFoundError,
    PermanentDeleteConfirmationRequired,
    StorageLoadError,
    StorageWriteError,
)
from vinoscan.query import QueryState, query_entries
from vinoscan.schema import WineEntry
from vinoscan.storage import JsonFileStorage, MemoryStorage


class FakeClock:
    def __init__(self, start: int = 1_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return CatalogStore(storage, clock=FakeClock())


def _entry(name: str, **kwargs) -> WineEntry:
    return WineEntry(name=name, **kwargs)


def _persisted(storage: MemoryStorage) -> list:
    return json.loads(storage.data["vinoscan_cellar"])["entries"]


class TestInsertAndUpdate:
    """Test creation and editing."""

    def test_insert_prepends(self, store):
        """Newest entries come first."""
        first = store.insert(_entry("First"))
        second = store.insert(_entry("Second"))
        assert [e.id for e in store.entries] == [second.id, first.id]

    def test_insert_persists(self, store, storage):
        """Every mutation writes the full collection."""
        entry = store.insert(_entry("Opus One"))
        assert [r["id"] for r in _persisted(storage)] == [entry.id]

    def test_no_dedup_by_name(self, store):
        """Same name and maker is allowed, uniqueness is by id only."""
        store.insert(_entry("Same", maker="X"))
        store.insert(_entry("Same", maker="X"))
        assert len(store) == 2

    def test_duplicate_id_rejected(self, store):
        """Ids are unique across the collection."""
        entry = store.insert(_entry("A"))
        with pytest.raises(DuplicateEntryError):
            store.insert(_entry("B", id=entry.id))
        assert len(store) == 1

    def test_duplicate_id_in_trash_rejected(self, store):
        """Trashed entries still reserve their id."""
        entry = store.insert(_entry("A"))
        store.soft_delete(entry.id)
        with pytest.raises(DuplicateEntryError):
            store.insert(_entry("B", id=entry.id))

    def test_update_replaces_by_id(self, store):
        """Edits replace the whole record in place."""
        a = store.insert(_entry("A"))
        b = store.insert(_entry("B"))
        store.update(a.model_copy(update={"name": "A2", "notes": "edited"}))
        assert store.get(a.id).name == "A2"
        assert [e.id for e in store.entries] == [b.id, a.id]

    def test_update_keeps_created_at(self, store):
        """Edits cannot change the creation time."""
        entry = store.insert(_entry("A", created_at=500))
        updated = store.update(entry.model_copy(update={"created_at": 999, "name": "B"}))
        assert updated.created_at == 500
        assert store.get(entry.id).created_at == 500

    def test_update_missing_id(self, store):
        """Updating an unknown id is a caller error."""
        with pytest.raises(EntryNotFoundError):
            store.update(_entry("Ghost"))


class TestTrashLifecycle:
    """Test soft delete, restore and purge."""

    def test_soft_delete_moves_to_trash(self, store):
        """Trashed entries leave the active view and enter the trash view."""
        entry = store.insert(_entry("A"))
        store.soft_delete(entry.id)

        assert store.get(entry.id).deleted_at is not None
        assert query_entries(store.entries) == []
        assert [e.id for e in query_entries(store.entries, QueryState(show_trash=True))] == [entry.id]
        assert store.trash_count == 1

    def test_soft_delete_is_idempotent(self, store):
        """Deleting again just refreshes the timestamp."""
        entry = store.insert(_entry("A"))
        first = store.soft_delete(entry.id).deleted_at
        second = store.soft_delete(entry.id).deleted_at
        assert second > first
        assert store.trash_count == 1

    def test_restore_roundtrip(self, store):
        """Delete then restore gives back the identical record."""
        entry = store.insert(_entry("A", notes="n", image_urls=("i1", "i2")))
        store.soft_delete(entry.id)
        restored = store.restore(entry.id)
        assert restored.model_dump() == entry.model_dump()
        assert restored.deleted_at is None

    def test_partitions_are_exclusive(self, store):
        """Every entry is in exactly one view."""
        ids = [store.insert(_entry(str(i))).id for i in range(6)]
        for entry_id in ids[::2]:
            store.soft_delete(entry_id)

        active = {e.id for e in query_entries(store.entries)}
        trash = {e.id for e in query_entries(store.entries, QueryState(show_trash=True))}
        assert active.isdisjoint(trash)
        assert active | trash == set(ids)

    def test_unknown_ids_are_noops(self, store, storage):
        """Soft delete and restore ignore unknown ids."""
        assert store.soft_delete("missing") is None
        assert store.restore("missing") is None
        assert "vinoscan_cellar" not in storage.data

    def test_purge_requires_confirmation(self, store):
        """Unconfirmed purge changes nothing."""
        entry = store.insert(_entry("A"))
        with pytest.raises(PermanentDeleteConfirmationRequired) as exc_info:
            store.purge(entry.id)
        assert exc_info.value.entry_ids == (entry.id,)
        assert entry.id in store

    def test_purge_removes_everywhere(self, store):
        """Purged ids are gone from both views and cannot be restored."""
        entry = store.insert(_entry("A"))
        store.soft_delete(entry.id)
        assert store.purge(entry.id, confirmed=True)

        assert entry.id not in store
        assert store.restore(entry.id) is None
        assert query_entries(store.entries) == []
        assert query_entries(store.entries, QueryState(show_trash=True)) == []

    def test_purge_unknown_id(self, store):
        """Purging an unknown id reports nothing removed."""
        assert store.purge("missing", confirmed=True) is False

    def test_empty_trash(self, store):
        """Emptying the trash keeps active entries."""
        keep = store.insert(_entry("Keep"))
        for name in ("A", "B"):
            store.soft_delete(store.insert(_entry(name)).id)

        with pytest.raises(PermanentDeleteConfirmationRequired):
            store.empty_trash()
        assert store.trash_count == 2

        assert store.empty_trash(confirmed=True) == 2
        assert [e.id for e in store.entries] == [keep.id]


class TestPersistence:
    """Test load/save behaviour."""

    def test_load_round_trip(self, storage):
        """A new store sees what the previous one saved."""
        first = CatalogStore(storage)
        entry = first.insert(_entry("Opus One", custom_fields=({"label": "Grape", "value": "Cab"},)))
        first.soft_delete(entry.id)

        second = CatalogStore(storage)
        assert second.load() == 1
        assert [e.model_dump() for e in second.entries] == [e.model_dump() for e in first.entries]

    def test_load_absent(self, store):
        """No saved blob means an empty catalog."""
        assert store.load() == 0
        assert len(store) == 0

    def test_legacy_image_url_migrated(self):
        """Version 1 records with a single imageUrl are wrapped."""
        legacy = json.dumps([
            {"id": "a", "imageUrl": "data:image/jpeg;base64,AAA", "name": "Old",
             "maker": "M", "year": "2001", "type": "Red", "price": "", "description": "",
             "binNumber": "", "notes": "", "customFields": [], "createdAt": 1},
            {"id": "b", "name": "No image", "type": "White", "createdAt": 2},
            {"id": "c", "imageUrls": ["x", "y"], "type": "Other", "createdAt": 3},
        ])
        store = CatalogStore(MemoryStorage({"vinoscan_cellar": legacy}))
        assert store.load() == 3
        assert store.get("a").image_urls == ("data:image/jpeg;base64,AAA",)
        assert store.get("b").image_urls == ()
        assert store.get("c").image_urls == ("x", "y")

    def test_corrupt_blob(self):
        """Corrupt data raises StorageLoadError and leaves the store empty."""
        store = CatalogStore(MemoryStorage({"vinoscan_cellar": "{not json"}))
        with pytest.raises(StorageLoadError):
            store.load()
        assert len(store) == 0

    def test_unknown_version(self):
        """Future schema versions are not guessed at."""
        with pytest.raises(StorageLoadError):
            decode_catalog(json.dumps({"version": 99, "entries": []}))

    def test_invalid_record(self):
        """A record that fails validation makes the blob corrupt."""
        with pytest.raises(StorageLoadError):
            decode_catalog(json.dumps([{"id": "a", "type": "Orange"}]))

    def test_encode_is_current_version(self):
        """Writes always use the latest format."""
        payload = json.loads(encode_catalog([_entry("A", id="a")]))
        assert payload["version"] == 2
        assert payload["entries"][0]["id"] == "a"

    def test_write_failure_keeps_memory_state(self, tmp_path):
        """Filesystem errors on save are reported as StorageWriteError."""
        (tmp_path / "vinoscan_cellar.json").mkdir()
        store = CatalogStore(JsonFileStorage(tmp_path))
        entry = _entry("A")

        with pytest.raises(StorageWriteError) as exc_info:
            store.insert(entry)

        assert len(store) == 1
        assert entry.id in store
        assert isinstance(exc_info.value.__cause__, OSError)
        assert "Could not save" in str(exc_info.value)

    def test_quota_keeps_memory_state(self):
        """A full store still applies the mutation in memory."""
        storage = MemoryStorage(quota_bytes=200)
        store = CatalogStore(storage)
        big = _entry("Huge", image_urls=("data:image/jpeg;base64," + "A" * 500,))

        with pytest.raises(StorageWriteError) as exc_info:
            store.insert(big)

        assert big.id in store
        assert "vinoscan_cellar" not in storage.data
        assert exc_info.value.notice().title == "Storage Full"


class TestCsv:
    """Test CSV import/export through the store."""

    def test_import_prepends_in_file_order(self, store):
        """Imported entries come before existing ones, in file order."""
        existing = store.insert(_entry("Existing", created_at=1))
        imported = store.import_csv("Name\nA\nB\n")
        assert [e.name for e in store.entries] == ["A", "B", "Existing"]
        assert all(e.created_at > existing.created_at for e in imported)

    def test_failed_import_changes_nothing(self, store, storage):
        """Structural failures abort before any entry is added."""
        store.insert(_entry("Existing"))
        before = storage.data["vinoscan_cellar"]
        with pytest.raises(CsvImportError):
            store.import_csv("Name,Maker\n")
        assert [e.name for e in store.entries] == ["Existing"]
        assert storage.data["vinoscan_cellar"] == before

    def test_export_skips_trash(self, store):
        """Only active entries are exported."""
        store.insert(_entry("Keep"))
        store.soft_delete(store.insert(_entry("Gone")).id)
        text = store.export_csv()
        assert '"Keep"' in text
        assert "Gone" not in text
