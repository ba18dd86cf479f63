"""
Camera session boundary.

Device access is held only for as long as a ``CameraSession`` is open: the
stream is stopped on every exit path, whether a photo was captured, the view
was closed, or an error occurred.
"""

import logging
from typing import Callable, Optional, Protocol

from vinoscan.error_handling import CameraError

logger = logging.getLogger(__name__)


class CameraStream(Protocol):
    """Live camera stream provided by the presentation layer."""

    def capture(self) -> bytes:
        """Grab the current frame as encoded image bytes."""
        ...

    def stop(self) -> None:
        """Release the device (stop all tracks)."""
        ...


class CameraPermissionError(Exception):
    """Raised by a stream factory when the user denied camera access."""


class CameraSession:
    """Context manager owning one camera stream.

    Usage:
        with CameraSession(open_stream) as camera:
            raw = camera.capture()
    """

    def __init__(self, open_stream: Callable[[], CameraStream]):
        self._open_stream = open_stream
        self.stream: Optional[CameraStream] = None

    def __enter__(self) -> "CameraSession":
        try:
            self.stream = self._open_stream()
        except CameraPermissionError as e:
            logger.warning(f"Camera permission denied: {e}")
            raise CameraError("Permission denied. Check settings.") from e
        except OSError as e:
            logger.warning(f"Camera unavailable: {e}")
            raise CameraError() from e
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def capture(self) -> bytes:
        """Capture one frame and release the stream."""
        if self.stream is None:
            raise CameraError("Camera is not open.")
        try:
            return self.stream.capture()
        finally:
            self.close()

    def close(self) -> None:
        if self.stream is not None:
            stream, self.stream = self.stream, None
            stream.stop()
            logger.debug("Camera stream released")


def capture_photo(open_stream: Callable[[], CameraStream]) -> bytes:
    """Open the camera, capture a single frame and release the device."""
    with CameraSession(open_stream) as camera:
        return camera.capture()
