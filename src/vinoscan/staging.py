"""
Staging workflow: photo captured -> optionally analyzed -> draft ready -> saved.

State machine::

    IDLE --add_images--> STAGING --analyze--> ANALYZING --ok--> DRAFT_READY
      ^                    |  ^                    |                 |
      |                    |  +------ failure -----+                 |
      +-- discard ---------+                                         |
      +------------------- save / cancel ----------------------------+

``quick_scan`` goes straight from a single capture to ANALYZING without
staging the image; on failure nothing is left behind.
"""

import logging
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple, Union

from vinoscan.analysis import LabelAnalyzer
from vinoscan.catalog import CatalogStore
from vinoscan.constants import Defaults
from vinoscan.error_handling import (
    EntryNotFoundError,
    InvalidTransitionError,
    StorageWriteError,
)
from vinoscan.images import compress_image, is_image, split_data_url, to_data_url
from vinoscan.schema import WineEntry
from vinoscan.utils import now_ms

logger = logging.getLogger(__name__)

ImageInput = Union[bytes, str]


class StagingState(str, Enum):
    IDLE = "idle"
    STAGING = "staging"
    ANALYZING = "analyzing"
    DRAFT_READY = "draft_ready"


def _as_data_url(image: ImageInput) -> str:
    if isinstance(image, bytes):
        return to_data_url(image)
    return image


def _looks_like_image(image: ImageInput) -> bool:
    if isinstance(image, bytes):
        return is_image(image)
    try:
        _, raw = split_data_url(image)
    except ValueError:
        return False
    return is_image(raw)


class StagingWorkflow:
    """
    Session-scoped coordinator between the image pipeline, the label
    analyzer and the catalog store.

    Only one operation runs at a time; ``busy`` is True while an analysis is
    in flight and any other action raises InvalidTransitionError.
    """

    def __init__(
        self,
        store: CatalogStore,
        analyzer: LabelAnalyzer,
        compressor: Callable[[str], str] = compress_image,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.analyzer = analyzer
        self.compressor = compressor
        self.clock = clock

        self.state = StagingState.IDLE
        self.staged: Tuple[str, ...] = ()
        self.draft: Optional[WineEntry] = None
        self.editing = False

    @property
    def busy(self) -> bool:
        return self.state is StagingState.ANALYZING

    def _require(self, *states: StagingState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(
                f"Cannot do that while {self.state.value} (needs: {allowed})."
            )

    def _reset(self) -> None:
        self.state = StagingState.IDLE
        self.staged = ()
        self.draft = None
        self.editing = False

    def _resting_state(self) -> StagingState:
        return StagingState.STAGING if self.staged else StagingState.IDLE

    # ---- staging ----

    def add_images(self, images: Iterable[ImageInput]) -> int:
        """
        Compress and stage images; non-image inputs are skipped.

        While a draft is open the images are appended to its gallery instead.

        Returns:
            Number of images added
        """
        self._require(StagingState.IDLE, StagingState.STAGING, StagingState.DRAFT_READY)

        compressed = []
        for image in images:
            if not _looks_like_image(image):
                logger.warning("Skipping upload that is not a supported image")
                continue
            compressed.append(self.compressor(_as_data_url(image)))

        if not compressed:
            return 0

        if self.state is StagingState.DRAFT_READY:
            self.draft = self.draft.with_images_added(compressed)
            logger.info(f"Added {len(compressed)} images to draft gallery")
        else:
            self.staged = self.staged + tuple(compressed)
            self.state = StagingState.STAGING
            logger.info(f"Staged {len(compressed)} images ({len(self.staged)} total)")
        return len(compressed)

    def remove_staged_image(self, index: int) -> None:
        self._require(StagingState.STAGING)
        self.staged = tuple(img for i, img in enumerate(self.staged) if i != index)
        self.state = self._resting_state()

    def discard(self) -> None:
        """Drop all staged images."""
        self._require(StagingState.IDLE, StagingState.STAGING)
        self._reset()

    # ---- draft creation ----

    def start_manual(self) -> WineEntry:
        """Skip analysis and open a blank draft with the staged images."""
        self._require(StagingState.STAGING)
        self.draft = WineEntry(
            image_urls=self.staged,
            wine_type=Defaults.MANUAL_TYPE,
            created_at=self.clock(),
        )
        self.staged = ()
        self.editing = False
        self.state = StagingState.DRAFT_READY
        return self.draft

    def analyze(self) -> WineEntry:
        """
        Analyze the first staged image and open a draft with all staged images.

        Raises:
            AnalysisError: Analysis failed; the staged images are kept
        """
        self._require(StagingState.STAGING)
        self.state = StagingState.ANALYZING
        try:
            result = self.analyzer.analyze(self.staged[0])
        except Exception:
            self.state = StagingState.STAGING
            raise

        self.draft = result.to_draft(self.staged, created_at=self.clock())
        self.staged = ()
        self.editing = False
        self.state = StagingState.DRAFT_READY
        return self.draft

    def quick_scan(self, image: ImageInput) -> WineEntry:
        """
        Compress and analyze a single capture without staging it.

        Raises:
            AnalysisError: Analysis failed; the capture is dropped
        """
        self._require(StagingState.IDLE, StagingState.STAGING)
        compressed = self.compressor(_as_data_url(image))

        self.state = StagingState.ANALYZING
        try:
            result = self.analyzer.analyze(compressed)
        except Exception:
            self.state = self._resting_state()
            raise

        self.draft = result.to_draft([compressed], created_at=self.clock())
        self.staged = ()
        self.editing = False
        self.state = StagingState.DRAFT_READY
        return self.draft

    def begin_edit(self, entry_id: str) -> WineEntry:
        """Open an existing entry as the draft."""
        self._require(StagingState.IDLE)
        entry = self.store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"No entry with id '{entry_id}'.")
        self.draft = entry
        self.editing = True
        self.state = StagingState.DRAFT_READY
        return entry

    # ---- draft editing ----

    def update_draft(self, **fields) -> WineEntry:
        """
        Change draft fields by name or persisted alias.

        Raises:
            ValueError: For unknown names, or ``id`` / ``created_at`` / ``deleted_at``
        """
        self._require(StagingState.DRAFT_READY)
        names = {(info.alias or name): name for name, info in WineEntry.model_fields.items()}
        names.update({name: name for name in WineEntry.model_fields})

        unknown = set(fields) - set(names)
        if unknown:
            raise ValueError(f"Unknown draft fields: {sorted(unknown)}")
        changes = {names[key]: value for key, value in fields.items()}

        locked = {"id", "created_at", "deleted_at"} & set(changes)
        if locked:
            raise ValueError(f"Fields cannot be edited: {sorted(locked)}")
        self.draft = WineEntry.model_validate({**self.draft.model_dump(), **changes})
        return self.draft

    def save(self, entry: Optional[WineEntry] = None) -> WineEntry:
        """
        Persist the draft (or the given final version of it) and return to idle.

        Raises:
            StorageWriteError: Saved in memory but not persisted; still idle
        """
        self._require(StagingState.DRAFT_READY)
        entry = entry if entry is not None else self.draft

        try:
            saved = self.store.update(entry) if self.editing else self.store.insert(entry)
        except StorageWriteError:
            self._reset()
            raise

        self._reset()
        return saved

    def cancel(self) -> None:
        """Discard the draft. Images it consumed are not restored to staging."""
        self._require(StagingState.DRAFT_READY)
        self._reset()
