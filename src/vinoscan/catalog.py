"""
Catalog store: the authoritative collection of wine entries.

The store is an explicit object owned by the application. Every mutation is
applied in memory first and then the whole collection is written to the
key-value storage. A failed write never rolls the mutation back; it is
reported as StorageWriteError after the fact.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from vinoscan import csv_codec
from vinoscan.config import STORAGE_KEY
from vinoscan.error_handling import (
    DuplicateEntryError,
    EntryNotFoundError,
    PermanentDeleteConfirmationRequired,
    QuotaExceededError,
    StorageLoadError,
    StorageWriteError,
)
from vinoscan.schema import WineEntry
from vinoscan.storage import KeyValueStorage
from vinoscan.utils import now_ms

logger = logging.getLogger(__name__)


# =======================
# PERSISTED SCHEMA
# =======================

SCHEMA_VERSION = 2


def _migrate_v1(records: List[Any]) -> List[Dict[str, Any]]:
    """Version 1 records may carry a single ``imageUrl`` instead of ``imageUrls``."""
    migrated = []
    for record in records:
        if not isinstance(record, dict):
            raise ValueError(f"Expected an object per entry, got {type(record).__name__}")
        record = dict(record)
        legacy_url = record.pop("imageUrl", None)
        if record.get("imageUrls") is None:
            record["imageUrls"] = [legacy_url] if legacy_url else []
        migrated.append(record)
    return migrated


def encode_catalog(entries: Iterable[WineEntry]) -> str:
    """Serialize entries into the current persisted format."""
    return json.dumps({
        "version": SCHEMA_VERSION,
        "entries": [entry.to_record() for entry in entries],
    }, ensure_ascii=False)


def decode_catalog(blob: str) -> List[WineEntry]:
    """
    Decode a persisted catalog blob of any known version.

    Version 1 is the legacy bare JSON array; version 2 wraps the entries in
    ``{"version": 2, "entries": [...]}``.

    Raises:
        StorageLoadError: If the blob is corrupt or of an unknown version
    """
    try:
        payload = json.loads(blob)
        if isinstance(payload, list):
            records = _migrate_v1(payload)
        elif isinstance(payload, dict) and payload.get("version") == SCHEMA_VERSION:
            records = payload.get("entries")
            if not isinstance(records, list):
                raise ValueError("'entries' must be a list")
        else:
            version = payload.get("version") if isinstance(payload, dict) else None
            raise ValueError(f"Unsupported catalog format (version={version!r})")
        return [WineEntry.model_validate(record) for record in records]
    except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
        raise StorageLoadError() from e


# =======================
# STORE
# =======================

class CatalogStore:
    """
    Ordered collection of WineEntry records synchronized with storage.

    New entries are prepended so the freshest come first in default views.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = STORAGE_KEY,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize an empty store. Call ``load()`` to read persisted entries.

        Args:
            storage: Durable key-value backend
            key: Storage key of the catalog blob
            clock: Returns the current time in epoch millis
        """
        self.storage = storage
        self.key = key
        self.clock = clock
        self._entries: List[WineEntry] = []

    # ---- read side ----

    @property
    def entries(self) -> Tuple[WineEntry, ...]:
        """Snapshot of the whole collection, trash included, in store order."""
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return self._index_of(entry_id) is not None

    def get(self, entry_id: str) -> Optional[WineEntry]:
        index = self._index_of(entry_id)
        return self._entries[index] if index is not None else None

    def active(self) -> List[WineEntry]:
        return [e for e in self._entries if not e.is_trashed]

    def trashed(self) -> List[WineEntry]:
        return [e for e in self._entries if e.is_trashed]

    @property
    def trash_count(self) -> int:
        return sum(1 for e in self._entries if e.is_trashed)

    def _index_of(self, entry_id: object) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        return None

    # ---- persistence ----

    def load(self) -> int:
        """
        Replace the in-memory collection with the persisted one.

        Returns:
            Number of entries loaded

        Raises:
            StorageLoadError: If the blob is corrupt; the store is left empty
        """
        self._entries = []
        blob = self.storage.load(self.key)
        if blob is None:
            logger.info("No saved cellar found, starting empty")
            return 0

        try:
            entries = decode_catalog(blob)
        except StorageLoadError as e:
            logger.warning(f"Could not decode saved cellar, starting empty: {e.__cause__}")
            raise

        ids = [e.id for e in entries]
        if len(set(ids)) != len(ids):
            logger.warning("Saved cellar contains duplicate ids, starting empty")
            raise StorageLoadError()

        self._entries = entries
        logger.info(f"Loaded {len(entries)} entries from storage")
        return len(entries)

    def _persist(self) -> None:
        try:
            self.storage.save(self.key, encode_catalog(self._entries))
        except QuotaExceededError as e:
            logger.warning(f"Cellar not persisted, keeping {len(self._entries)} entries in memory: {e}")
            raise StorageWriteError() from e
        except OSError as e:
            logger.error(f"Cellar not persisted, keeping {len(self._entries)} entries in memory: {e}")
            raise StorageWriteError(
                "Could not save your cellar. Recent changes are kept until the app closes."
            ) from e

    # ---- mutations ----

    def insert(self, entry: WineEntry) -> WineEntry:
        """Add a new entry at the front of the collection."""
        return self.insert_many([entry])[0]

    def insert_many(self, entries: Iterable[WineEntry]) -> List[WineEntry]:
        """
        Prepend a batch of entries, keeping their order.

        The batch is checked for id clashes before anything is added.

        Raises:
            DuplicateEntryError: If any id already exists or repeats in the batch
        """
        batch = list(entries)
        seen = set(e.id for e in self._entries)
        for entry in batch:
            if entry.id in seen:
                raise DuplicateEntryError(f"An entry with id '{entry.id}' already exists.")
            seen.add(entry.id)

        if not batch:
            return batch
        self._entries = batch + self._entries
        logger.info(f"Added {len(batch)} entries ({len(self._entries)} total)")
        self._persist()
        return batch

    def update(self, entry: WineEntry) -> WineEntry:
        """
        Replace the stored entry with the same id.

        ``created_at`` and ``deleted_at`` are kept from the stored record;
        edits cannot change creation time or move an entry between views.

        Raises:
            EntryNotFoundError: If no entry has that id
        """
        index = self._index_of(entry.id)
        if index is None:
            raise EntryNotFoundError(f"No entry with id '{entry.id}'.")

        current = self._entries[index]
        updated = entry.model_copy(update={
            "created_at": current.created_at,
            "deleted_at": current.deleted_at,
        })
        self._entries[index] = updated
        logger.info(f"Updated entry {entry.id}")
        self._persist()
        return updated

    def _set_deleted_at(self, entry_id: str, deleted_at: Optional[int]) -> Optional[WineEntry]:
        index = self._index_of(entry_id)
        if index is None:
            logger.debug(f"No entry with id {entry_id}, nothing to change")
            return None
        entry = self._entries[index].model_copy(update={"deleted_at": deleted_at})
        self._entries[index] = entry
        self._persist()
        return entry

    def soft_delete(self, entry_id: str) -> Optional[WineEntry]:
        """Move an entry to the trash. Re-deleting refreshes the timestamp."""
        entry = self._set_deleted_at(entry_id, self.clock())
        if entry is not None:
            logger.info(f"Moved entry {entry_id} to trash")
        return entry

    def restore(self, entry_id: str) -> Optional[WineEntry]:
        """Bring an entry back from the trash. Unknown ids are ignored."""
        entry = self._set_deleted_at(entry_id, None)
        if entry is not None:
            logger.info(f"Restored entry {entry_id}")
        return entry

    def purge(self, entry_id: str, confirmed: bool = False) -> bool:
        """
        Permanently remove an entry.

        Args:
            entry_id: Entry to remove
            confirmed: Explicit user confirmation, required

        Returns:
            True if an entry was removed

        Raises:
            PermanentDeleteConfirmationRequired: If ``confirmed`` is not True
        """
        if not confirmed:
            raise PermanentDeleteConfirmationRequired((entry_id,))

        index = self._index_of(entry_id)
        if index is None:
            return False
        del self._entries[index]
        logger.info(f"Permanently deleted entry {entry_id}")
        self._persist()
        return True

    def empty_trash(self, confirmed: bool = False) -> int:
        """Permanently remove every trashed entry. Returns the number removed."""
        trashed_ids = tuple(e.id for e in self._entries if e.is_trashed)
        if not confirmed:
            raise PermanentDeleteConfirmationRequired(
                trashed_ids,
                f"This will permanently erase {len(trashed_ids)} bottles. Continue?",
            )
        if not trashed_ids:
            return 0

        self._entries = [e for e in self._entries if not e.is_trashed]
        logger.info(f"Emptied trash ({len(trashed_ids)} entries)")
        self._persist()
        return len(trashed_ids)

    # ---- CSV ----

    def import_csv(self, text: str) -> List[WineEntry]:
        """
        Import entries from CSV text, ahead of the existing ones.

        Raises:
            CsvImportError: If the file has no data rows; nothing is added
        """
        entries = csv_codec.import_entries(text, start_ms=self.clock())
        return self.insert_many(entries)

    def export_csv(self) -> str:
        """Export the active entries in collection order."""
        return csv_codec.export_csv(self._entries)
