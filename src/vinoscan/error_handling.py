"""
Standardized Error Handling for VinoScan

Every recoverable failure is a CellarError subclass that knows how to present
itself as a single title + message pair for the user.
"""

import logging
from enum import Enum
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


class Notice(NamedTuple):
    """User-visible title and message for a recovered failure."""
    title: str
    message: str


class CellarError(Exception):
    """Base exception for VinoScan."""

    title = "Something Went Wrong"
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    def notice(self) -> Notice:
        """Return the title/message pair shown to the user."""
        return Notice(self.title, str(self))


class StorageLoadError(CellarError):
    """Persisted catalog could not be decoded; the store starts empty."""

    title = "Storage Error"
    default_message = "Could not load your saved cellar. Data might be corrupted."


class QuotaExceededError(CellarError):
    """Raised by a storage backend when a write does not fit."""

    title = "Storage Full"
    default_message = "The storage quota was exceeded."


class StorageWriteError(CellarError):
    """Catalog could not be persisted; in-memory state is kept."""

    title = "Storage Full"
    default_message = (
        "Your cellar is too large for local storage. "
        "Try removing some photos or entries."
    )


class AnalysisFailure(str, Enum):
    """Classified label-analysis failure modes."""
    MISSING_CREDENTIAL = "missing_credential"
    NETWORK = "network"
    EMPTY_RESPONSE = "empty_response"
    PARSE_FAILURE = "parse_failure"
    PROVIDER_ERROR = "provider_error"


_ANALYSIS_MESSAGES = {
    AnalysisFailure.MISSING_CREDENTIAL:
        "Missing OpenAI API key. Please ensure the environment is configured correctly.",
    AnalysisFailure.NETWORK:
        "Network error: Could not reach the AI service. Please check your internet connection.",
    AnalysisFailure.EMPTY_RESPONSE:
        "The AI returned an empty response. The label might be too blurry or not visible.",
    AnalysisFailure.PARSE_FAILURE:
        "Failed to process the AI response. Try taking a clearer photo.",
    AnalysisFailure.PROVIDER_ERROR:
        "An unexpected error occurred during wine label analysis.",
}


class AnalysisError(CellarError):
    """Label analysis failed; the caller goes back to staging."""

    title = "Analysis Failed"

    def __init__(self, kind: AnalysisFailure, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or _ANALYSIS_MESSAGES[kind])


class CsvImportError(CellarError):
    """CSV import aborted before any entry was added."""

    title = "Import Failed"
    default_message = "Failed to parse CSV file."


class PermanentDeleteConfirmationRequired(CellarError):
    """A purge was requested without explicit user confirmation."""

    title = "Confirm Permanent Delete"
    default_message = "This will permanently erase this bottle. Continue?"

    def __init__(self, entry_ids: tuple = (), message: Optional[str] = None):
        self.entry_ids = tuple(entry_ids)
        super().__init__(message)


class EntryNotFoundError(CellarError):
    """No catalog entry has the requested id."""

    title = "Save Failed"
    default_message = "Could not find that bottle in your cellar."


class DuplicateEntryError(CellarError):
    """An entry with the same id is already in the catalog."""

    title = "Save Failed"
    default_message = "That bottle is already in your cellar."


class InvalidTransitionError(CellarError):
    """The staging workflow cannot perform the action in its current state."""

    title = "Please Wait"
    default_message = "That action is not available right now."


class CameraError(CellarError):
    """Camera stream could not be acquired."""

    title = "Camera Error"
    default_message = "Camera in use or not found."


class NoticeContext:
    """Context manager that recovers CellarErrors at the presentation boundary.

    Usage:
        with NoticeContext("import csv") as ctx:
            store.import_csv(text)
        if ctx.notice:
            show(ctx.notice.title, ctx.notice.message)
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.error: Optional[CellarError] = None
        self.notice: Optional[Notice] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None or not issubclass(exc_type, CellarError):
            return False

        self.error = exc_val
        self.notice = exc_val.notice()
        logger.warning(f"{self.operation} failed: {exc_type.__name__} - {exc_val}")
        return True


__all__ = [
    'Notice',
    'CellarError',
    'StorageLoadError',
    'QuotaExceededError',
    'StorageWriteError',
    'AnalysisFailure',
    'AnalysisError',
    'CsvImportError',
    'PermanentDeleteConfirmationRequired',
    'EntryNotFoundError',
    'DuplicateEntryError',
    'InvalidTransitionError',
    'CameraError',
    'NoticeContext',
]
