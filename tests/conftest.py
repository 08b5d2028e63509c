"""
Shared fixtures: synthetic page photos built with numpy + OpenCV.
"""

import os
import sys

import cv2
import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from paperscan.models import Annotation, ExtractedField, Raster  # noqa: E402


def encode_rgb(pixels: np.ndarray, ext: str = ".png", params=None) -> bytes:
    """Encode an RGB(A) array with OpenCV (which expects BGR order)."""
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        bgr = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGRA)
    elif pixels.ndim == 3:
        bgr = cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)
    else:
        bgr = pixels
    ok, buf = cv2.imencode(ext, bgr, params or [])
    assert ok
    return buf.tobytes()


def document_photo(width: int, height: int, seed: int = 0) -> np.ndarray:
    """Off-white page with a few dark 'text' bars and some sensor noise."""
    rng = np.random.default_rng(seed)
    page = np.full((height, width, 3), 235, dtype=np.uint8)
    for top in range(height // 10, height - height // 10, max(4, height // 12)):
        page[top:top + max(1, height // 60), width // 10: width - width // 10] = 30
    noise = rng.integers(-6, 7, size=page.shape)
    return np.clip(page.astype(np.int16) + noise, 0, 255).astype(np.uint8)


@pytest.fixture
def make_jpeg():
    def _make(width: int = 320, height: int = 240, seed: int = 0) -> bytes:
        return encode_rgb(document_photo(width, height, seed), ".jpg", [int(cv2.IMWRITE_JPEG_QUALITY), 90])
    return _make


@pytest.fixture
def make_png():
    def _make(pixels: np.ndarray) -> bytes:
        return encode_rgb(pixels, ".png")
    return _make


@pytest.fixture
def make_raster():
    def _make(width: int = 64, height: int = 48, color=(200, 100, 50)) -> Raster:
        pixels = np.zeros((height, width, len(color)), dtype=np.uint8)
        pixels[:, :] = color
        return Raster(pixels)
    return _make


@pytest.fixture
def annotation() -> Annotation:
    return Annotation(
        document_type="Invoice",
        summary="Invoice from Acme Corp for March consulting services, due in 30 days.",
        extracted_data=[
            ExtractedField(label="Vendor", value="Acme Corp"),
            ExtractedField(label="Total", value="$1,250.00"),
            ExtractedField(label="Due Date", value="2024-04-30"),
        ],
    )
