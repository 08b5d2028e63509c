"""
Image Types - Recognise supported raster formats from their leading bytes.

The declared MIME type of an upload is only a hint (browsers and phones
frequently get it wrong), so decoding is driven by the file signature.
"""

from typing import Optional
from enum import Enum
import logging


logger = logging.getLogger(__name__)


class ImageFormat(str, Enum):
    """Supported raster image formats"""
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    BMP = "bmp"
    TIFF = "tiff"
    GIF = "gif"


# Signature prefix -> format
_SIGNATURES = [
    (b"\xff\xd8\xff", ImageFormat.JPEG),
    (b"\x89PNG\r\n\x1a\n", ImageFormat.PNG),
    (b"BM", ImageFormat.BMP),
    (b"II*\x00", ImageFormat.TIFF),
    (b"MM\x00*", ImageFormat.TIFF),
    (b"GIF87a", ImageFormat.GIF),
    (b"GIF89a", ImageFormat.GIF),
]

MIME_TYPES = {
    "image/jpeg": ImageFormat.JPEG,
    "image/jpg": ImageFormat.JPEG,
    "image/pjpeg": ImageFormat.JPEG,
    "image/png": ImageFormat.PNG,
    "image/webp": ImageFormat.WEBP,
    "image/bmp": ImageFormat.BMP,
    "image/tiff": ImageFormat.TIFF,
    "image/gif": ImageFormat.GIF,
}


def sniff_image_format(data: bytes) -> Optional[ImageFormat]:
    """Detect the image format from magic bytes. Returns None if unknown."""
    if not data:
        return None

    # RIFF....WEBP
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP

    for prefix, fmt in _SIGNATURES:
        if data.startswith(prefix):
            return fmt

    return None


def format_from_mime(mime_type: str) -> Optional[ImageFormat]:
    """Map a declared MIME type (parameters ignored) to a format."""
    if not mime_type:
        return None
    return MIME_TYPES.get(mime_type.split(";", 1)[0].strip().lower())


def detect_image_format(data: bytes, mime_type: str = "") -> Optional[ImageFormat]:
    """
    Resolve the format of an upload.

    The signature wins over the declared type; a mismatch is only logged.
    """
    sniffed = sniff_image_format(data)
    declared = format_from_mime(mime_type)

    if sniffed and declared and sniffed != declared:
        logger.info(f"[IMAGE TYPE] declared {mime_type!r} but content is {sniffed.value}")

    return sniffed
