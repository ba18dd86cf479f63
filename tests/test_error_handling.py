"""
Tests for the error hierarchy and NoticeContext.
"""

import pytest
from vinoscan.error_handling import (
    CellarError,
    CsvImportError,
    NoticeContext,
    PermanentDeleteConfirmationRequired,
    StorageLoadError,
    StorageWriteError,
)


class TestNotices:
    """Test user-facing notices."""

    def test_default_message(self):
        """Errors raised without a message use their default."""
        notice = StorageLoadError().notice()
        assert notice.title == "Storage Error"
        assert "corrupted" in notice.message

    def test_custom_message(self):
        """An explicit message replaces the default."""
        notice = CsvImportError("CSV is empty or missing headers.").notice()
        assert notice == ("Import Failed", "CSV is empty or missing headers.")

    def test_confirmation_carries_ids(self):
        """Purge confirmation requests list the affected ids."""
        error = PermanentDeleteConfirmationRequired(["a", "b"])
        assert error.entry_ids == ("a", "b")
        assert "permanently" in str(error)


class TestNoticeContext:
    """Test recovery at the presentation boundary."""

    def test_recovers_cellar_errors(self):
        """CellarErrors are suppressed and turned into a notice."""
        with NoticeContext("save") as ctx:
            raise StorageWriteError()
        assert isinstance(ctx.error, StorageWriteError)
        assert ctx.notice.title == "Storage Full"

    def test_success_has_no_notice(self):
        """Nothing to show when the block succeeds."""
        with NoticeContext("save") as ctx:
            pass
        assert ctx.error is None
        assert ctx.notice is None

    def test_other_errors_propagate(self):
        """Programming errors are not swallowed."""
        with pytest.raises(TypeError):
            with NoticeContext("save"):
                raise TypeError("bug")

    def test_base_class(self):
        """The base error has a generic notice."""
        with NoticeContext("anything") as ctx:
            raise CellarError()
        assert ctx.notice.title == "Something Went Wrong"
