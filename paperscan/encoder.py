"""
Encoder - baseline JPEG compression of processed rasters.

Output is deterministic: the same raster and factor always give the same
bytes, which keeps generated documents reproducible for golden-file tests.
"""

import logging

import cv2
import numpy as np

from paperscan.errors import EncodingError, InvalidInput
from paperscan.models import EncodedImage, Raster


logger = logging.getLogger(__name__)


def jpeg_quality(compression: float) -> int:
    """Map a compression factor in (0, 1] to a libjpeg quality (1-100)."""
    if not (0.0 < compression <= 1.0):
        raise InvalidInput(f"Compression factor must be in (0, 1], got {compression}")
    return max(1, min(100, int(round(compression * 100))))


def encode(raster: Raster, compression: float) -> EncodedImage:
    """
    Compress a raster to JPEG.

    Raises:
        InvalidInput: If the factor is outside (0, 1]
        EncodingError: If the raster layout cannot be stored as JPEG
    """
    quality = jpeg_quality(compression)

    if raster.has_alpha:
        raise EncodingError("JPEG cannot store an alpha channel; flatten the raster first")
    if raster.pixels.dtype != np.uint8:
        raise EncodingError(f"JPEG needs 8-bit samples, got {raster.pixels.dtype}")

    bgr = cv2.cvtColor(raster.pixels, cv2.COLOR_RGB2BGR)
    params = [
        int(cv2.IMWRITE_JPEG_QUALITY), quality,
        int(cv2.IMWRITE_JPEG_PROGRESSIVE), 0,
        int(cv2.IMWRITE_JPEG_OPTIMIZE), 0,
    ]
    try:
        ok, buf = cv2.imencode(".jpg", bgr, params)
    except cv2.error as e:
        raise EncodingError(f"JPEG encoding failed: {e}") from e
    if not ok:
        raise EncodingError("JPEG encoding failed")

    data = buf.tobytes()
    logger.debug(f"[ENCODE] {raster.width}x{raster.height} q={quality} -> {len(data)} bytes")
    return EncodedImage(data=data, width=raster.width, height=raster.height)
