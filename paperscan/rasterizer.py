"""
Rasterizer - decode uploaded images and resample them for a quality tier.

Printed output has no alpha, so transparent regions are flattened onto
white before resizing. Resampling only ever shrinks, with area
interpolation so photographed text does not alias.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from paperscan.errors import DecodeError
from paperscan.image_types import ImageFormat, detect_image_format
from paperscan.models import QualityTier, Raster, SourceImage


logger = logging.getLogger(__name__)


# ============================================
# DECODING
# ============================================

def decode_image(source: SourceImage, index: int = 0) -> Raster:
    """
    Decode a source image into an opaque RGB raster.

    Raises:
        DecodeError: If the bytes are not a supported, decodable image
    """
    if not source.data:
        raise DecodeError("Image is empty", index=index)

    fmt = detect_image_format(source.data, source.mime_type)
    if fmt is None:
        raise DecodeError(
            f"Unsupported or unrecognised image format (declared {source.mime_type or 'unknown'})",
            index=index,
        )

    # JPEG: IMREAD_COLOR applies the EXIF orientation of phone photos.
    # Everything else: keep the alpha channel so it can be flattened.
    flags = cv2.IMREAD_COLOR if fmt == ImageFormat.JPEG else cv2.IMREAD_UNCHANGED

    buf = np.frombuffer(source.data, dtype=np.uint8)
    try:
        decoded = cv2.imdecode(buf, flags)
    except cv2.error as e:
        raise DecodeError(f"Corrupt {fmt.value} data: {e}", index=index) from e

    if decoded is None or decoded.size == 0:
        raise DecodeError(f"Could not decode {fmt.value} image", index=index)

    pixels = _to_rgb8(decoded, index)
    logger.debug(f"[DECODE] image {index}: {fmt.value} {pixels.shape[1]}x{pixels.shape[0]}")
    return Raster(pixels)


def _to_rgb8(decoded: np.ndarray, index: int) -> np.ndarray:
    """Normalise OpenCV output (BGR/BGRA/gray, 8 or 16 bit) to RGB uint8."""
    if decoded.dtype == np.uint16:
        decoded = (decoded // 257).astype(np.uint8)
    elif decoded.dtype != np.uint8:
        raise DecodeError(f"Unsupported sample type {decoded.dtype}", index=index)

    if decoded.ndim == 2:
        return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)

    channels = decoded.shape[2]
    if channels == 1:
        return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)
    if channels == 3:
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
    if channels == 4:
        return flatten_alpha(cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA))

    raise DecodeError(f"Unsupported channel count {channels}", index=index)


def flatten_alpha(rgba: np.ndarray) -> np.ndarray:
    """Composite an RGBA array onto an opaque white background."""
    rgb = rgba[:, :, :3].astype(np.float32)
    alpha = rgba[:, :, 3:4].astype(np.float32) / 255.0
    flat = rgb * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.floor(flat + 0.5), 0, 255).astype(np.uint8)


# ============================================
# RESAMPLING
# ============================================

def target_size(width: int, height: int, max_width: int) -> Tuple[int, int]:
    """
    Size after limiting the larger dimension to max_width.

    Never upscales; the aspect ratio is kept up to rounding.
    """
    longest = max(width, height)
    if longest <= max_width:
        return width, height

    scale = max_width / float(longest)
    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))
    return new_width, new_height


def resample(raster: Raster, max_width: int) -> Raster:
    """Downscale a raster so it fits the tier limit (area interpolation)."""
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")

    new_width, new_height = target_size(raster.width, raster.height, max_width)
    if (new_width, new_height) == (raster.width, raster.height):
        return raster

    logger.debug(
        f"[RESAMPLE] {raster.width}x{raster.height} -> {new_width}x{new_height}"
    )
    resized = cv2.resize(raster.pixels, (new_width, new_height), interpolation=cv2.INTER_AREA)
    return Raster(resized)


def rasterize(source: SourceImage, quality: QualityTier, index: int = 0) -> Raster:
    """Decode a source image and resample it for the quality tier."""
    return resample(decode_image(source, index=index), quality.max_width)
