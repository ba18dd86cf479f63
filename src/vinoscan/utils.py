"""
Utility functions for VinoScan.

Includes logging setup, identifiers, timestamps and upload validation.
"""

import io
import logging
import time
import uuid

from PIL import Image, UnidentifiedImageError

from vinoscan.config import LOG_LEVEL, MAX_UPLOAD_SIZE_MB

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_entry_id() -> str:
    """Generate an opaque unique identifier for a catalog entry."""
    return uuid.uuid4().hex


# =======================
# UPLOAD VALIDATION
# =======================

def validate_image_upload(file_bytes: bytes, max_size_mb: int = MAX_UPLOAD_SIZE_MB) -> bool:
    """
    Validate uploaded image file.

    Any format Pillow can identify is accepted; the pixels are decoded later
    by the compressor.

    Args:
        file_bytes: Raw file bytes
        max_size_mb: Maximum file size in MB

    Returns:
        True if valid, False otherwise
    """
    size_mb = len(file_bytes) / (1024 * 1024)
    if size_mb > max_size_mb:
        logger.warning(f"Image too large: {size_mb:.2f}MB > {max_size_mb}MB")
        return False

    try:
        with Image.open(io.BytesIO(file_bytes)) as image:
            format_name = image.format
            image.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        logger.warning(f"Unknown or invalid image format: {e}")
        return False

    logger.debug(f"Valid {format_name} image detected")
    return True
