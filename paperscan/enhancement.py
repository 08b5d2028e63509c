"""
Enhancement Engine - per-page visual filters.

Every filter keeps the raster dimensions and leaves an alpha channel (if
any) untouched. The document modes produce monochrome output: the three
colour channels always carry the same value.

Modes:
- original: passthrough
- grayscale: perceptual luminance
- document_contrast: luminance + fixed contrast remap + brightness offset
- shadow_removal: shading correction against a blurred background
  estimate, followed by a black/white point stretch
"""

import logging
import math

import cv2
import numpy as np

from paperscan.models import Raster, VisualMode


logger = logging.getLogger(__name__)


# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

CONTRAST = 120
BRIGHTNESS_OFFSET = 25

# Shadow removal
MIN_BLUR_RADIUS = 15
BLUR_RADIUS_FRACTION = 0.025
BLACK_POINT = 50
WHITE_POINT = 230


def _round_clamp(values: np.ndarray) -> np.ndarray:
    """Round half-up and clamp to the 0..255 byte range."""
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def luminance(raster: Raster) -> np.ndarray:
    """Unrounded luminance plane as float32, shape (height, width)."""
    rgb = raster.pixels[:, :, :3].astype(np.float32)
    r, g, b = LUMA_WEIGHTS
    return rgb[:, :, 0] * r + rgb[:, :, 1] * g + rgb[:, :, 2] * b


def contrast_factor(contrast: float = CONTRAST) -> float:
    return 259.0 * (contrast + 255.0) / (255.0 * (259.0 - contrast))


def shadow_blur_radius(width: int) -> int:
    return max(MIN_BLUR_RADIUS, int(math.floor(BLUR_RADIUS_FRACTION * width)))


def _with_gray(raster: Raster, gray: np.ndarray) -> Raster:
    """New raster with every colour channel set to gray; alpha copied."""
    out = np.empty_like(raster.pixels)
    out[:, :, 0] = gray
    out[:, :, 1] = gray
    out[:, :, 2] = gray
    if raster.has_alpha:
        out[:, :, 3] = raster.pixels[:, :, 3]
    return Raster(out)


# ============================================
# FILTERS
# ============================================

def to_grayscale(raster: Raster) -> Raster:
    return _with_gray(raster, _round_clamp(luminance(raster)))


def document_contrast(raster: Raster) -> Raster:
    """Push ink toward black and paper toward white."""
    gray = np.floor(luminance(raster) + 0.5)
    adjusted = contrast_factor() * (gray - 128.0) + 128.0 + BRIGHTNESS_OFFSET
    return _with_gray(raster, _round_clamp(adjusted))


def estimate_background(gray: np.ndarray, radius: int) -> np.ndarray:
    """
    Low-frequency illumination estimate.

    A Gaussian with sigma = radius wipes out text strokes but keeps slow
    gradients such as a hand shadow or lens vignetting.
    """
    return cv2.GaussianBlur(
        gray,
        (0, 0),
        sigmaX=float(radius),
        sigmaY=float(radius),
        borderType=cv2.BORDER_REPLICATE,
    )


def stretch_levels(values: np.ndarray, black: int = BLACK_POINT, white: int = WHITE_POINT) -> np.ndarray:
    """Snap to black/white outside [black, white], linear remap inside."""
    stretched = (values - black) * (255.0 / (white - black))
    stretched = np.where(values >= white, 255.0, stretched)
    stretched = np.where(values <= black, 0.0, stretched)
    return _round_clamp(stretched)


def remove_shadows(raster: Raster) -> Raster:
    gray = np.floor(luminance(raster) + 0.5).astype(np.float32)
    radius = shadow_blur_radius(raster.width)
    background = estimate_background(gray, radius)

    safe = np.where(background > 1.0, background, 1.0)
    ratio = np.where(background > 1.0, gray / safe * 255.0, 255.0)

    logger.debug(f"[ENHANCE] shadow removal radius={radius} on {raster.width}x{raster.height}")
    return _with_gray(raster, stretch_levels(ratio))


_FILTERS = {
    VisualMode.GRAYSCALE: to_grayscale,
    VisualMode.DOCUMENT_CONTRAST: document_contrast,
    VisualMode.SHADOW_REMOVAL: remove_shadows,
}


def enhance(raster: Raster, mode: VisualMode) -> Raster:
    """Apply the filter for a visual mode. Same dimensions in and out."""
    mode = VisualMode(mode)
    if mode == VisualMode.ORIGINAL:
        return raster
    return _FILTERS[mode](raster)
