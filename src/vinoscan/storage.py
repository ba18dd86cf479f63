"""
Durable key-value storage backends.

The catalog only needs two primitives: ``load(key)`` returning the stored
text or None, and ``save(key, blob)`` raising QuotaExceededError when the
blob does not fit.
"""

import errno
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from vinoscan.config import DATA_DIR, STORAGE_QUOTA_BYTES
from vinoscan.error_handling import QuotaExceededError

logger = logging.getLogger(__name__)

_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class KeyValueStorage(Protocol):
    """Storage boundary consumed by the catalog store."""

    def load(self, key: str) -> Optional[str]:
        ...

    def save(self, key: str, blob: str) -> None:
        ...


def _check_quota(key: str, blob: str, quota_bytes: Optional[int]) -> None:
    size = len(blob.encode("utf-8"))
    if quota_bytes is not None and size > quota_bytes:
        logger.warning(f"Storage quota exceeded for '{key}': {size} > {quota_bytes} bytes")
        raise QuotaExceededError(
            f"Writing {size} bytes to '{key}' exceeds the {quota_bytes} byte quota."
        )


class MemoryStorage:
    """In-process storage, mainly for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, quota_bytes: Optional[int] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def save(self, key: str, blob: str) -> None:
        _check_quota(key, blob, self.quota_bytes)
        self.data[key] = blob


class JsonFileStorage:
    """
    File-based storage, one ``<key>.json`` file per key.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a failed write never truncates the previous blob.
    """

    def __init__(self, directory: Path = DATA_DIR, quota_bytes: Optional[int] = STORAGE_QUOTA_BYTES):
        """
        Initialize storage.

        Args:
            directory: Directory for storage files (created if missing),
                defaults to VINOSCAN_DATA_DIR or ~/.vinoscan
            quota_bytes: Maximum size of a single blob, None for unlimited
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes

        logger.info(f"JSON file storage initialized at {self.directory}")

    def _path(self, key: str) -> Path:
        safe_key = re.sub(r'[^\w.-]', '_', key)
        return self.directory / f"{safe_key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, key: str, blob: str) -> None:
        _check_quota(key, blob, self.quota_bytes)

        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            if e.errno in _FULL_ERRNOS:
                raise QuotaExceededError(f"No space left to write '{key}'.") from e
            raise
        logger.debug(f"Saved {len(blob)} chars to {path}")
