"""
Image pipeline: downscale uploaded or captured label photos before they are
stored in the catalog or sent for analysis.

Images travel through the library as base64 ``data:`` URLs, the same form
they are persisted in.
"""

import base64
import binascii
import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from vinoscan.config import JPEG_QUALITY, MAX_IMAGE_DIMENSION
from vinoscan.utils import validate_image_upload

logger = logging.getLogger(__name__)

_DEFAULT_MIME = "image/jpeg"


def to_data_url(raw: bytes, mime: str = _DEFAULT_MIME) -> str:
    """Encode raw image bytes as a base64 data URL."""
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def split_data_url(url: str) -> Tuple[str, bytes]:
    """
    Split a data URL into (mime type, raw bytes).

    A bare base64 string without the ``data:`` prefix is accepted and
    assumed to be JPEG.

    Raises:
        ValueError: If the payload is not valid base64
    """
    mime = _DEFAULT_MIME
    payload = url
    if url.startswith("data:") and "," in url:
        header, payload = url.split(",", 1)
        mime = header[len("data:"):].split(";", 1)[0] or _DEFAULT_MIME
    try:
        return mime, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


def is_image(raw: bytes) -> bool:
    """True if ``raw`` is an image upload Pillow can read."""
    return validate_image_upload(raw)


def target_size(width: int, height: int, max_size: int = MAX_IMAGE_DIMENSION) -> Tuple[int, int]:
    """
    Compute output dimensions with the longer side capped at ``max_size``.

    Aspect ratio is preserved and images already within the bound are left
    unchanged (never upscaled).
    """
    if width > height:
        if width > max_size:
            height = height * max_size / width
            width = max_size
    elif height > max_size:
        width = width * max_size / height
        height = max_size

    return max(1, int(width)), max(1, int(height))


def compress_image_bytes(raw: bytes, max_size: int = MAX_IMAGE_DIMENSION,
                         quality: int = JPEG_QUALITY) -> bytes:
    """
    Downscale and re-encode an image as JPEG.

    Args:
        raw: Encoded image bytes in any format Pillow can read
        max_size: Bound for the longer side in pixels
        quality: JPEG quality (1-95)

    Returns:
        JPEG bytes, or ``raw`` unchanged if it could not be decoded
    """
    try:
        with Image.open(io.BytesIO(raw)) as image:
            image.load()
            size = target_size(image.width, image.height, max_size)
            if size != image.size:
                image = image.resize(size, Image.Resampling.LANCZOS)

            # Flatten transparency onto white, JPEG has no alpha
            if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
                image = image.convert("RGBA")
                background = Image.new("RGB", image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[3])
                image = background
            elif image.mode != "RGB":
                image = image.convert("RGB")

            out = io.BytesIO()
            image.save(out, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning(f"Could not decode image, keeping original: {e}")
        return raw

    compressed = out.getvalue()
    logger.debug(f"Compressed image {len(raw)} -> {len(compressed)} bytes at {size[0]}x{size[1]}")
    return compressed


def compress_image(data_url: str, max_size: int = MAX_IMAGE_DIMENSION,
                   quality: int = JPEG_QUALITY) -> str:
    """
    Compress a data-URL image, returning a JPEG data URL.

    On any decode failure the original string is returned unmodified.
    """
    try:
        _, raw = split_data_url(data_url)
    except ValueError as e:
        logger.warning(f"Could not decode image, keeping original: {e}")
        return data_url

    compressed = compress_image_bytes(raw, max_size=max_size, quality=quality)
    if compressed is raw:
        return data_url
    return to_data_url(compressed, "image/jpeg")
