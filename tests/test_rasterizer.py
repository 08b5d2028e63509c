"""
Tests for decoding and resampling

Tests cover:
1. Format detection from magic bytes
2. Decoding to opaque RGB (alpha, gray, 16-bit)
3. Decode failures carry the image index
4. Tier resampling (downscale only, aspect kept)
"""

import numpy as np
import pytest

from paperscan.errors import DecodeError
from paperscan.image_types import ImageFormat, detect_image_format, format_from_mime, sniff_image_format
from paperscan.models import QualityTier, Raster, SourceImage
from paperscan.rasterizer import decode_image, flatten_alpha, rasterize, resample, target_size


# ============================================
# FORMAT DETECTION
# ============================================

class TestImageTypes:
    """Tests for signature-based format detection"""

    def test_sniff_jpeg_and_png(self, make_jpeg, make_png):
        assert sniff_image_format(make_jpeg(16, 16)) == ImageFormat.JPEG
        assert sniff_image_format(make_png(np.zeros((4, 4, 3), dtype=np.uint8))) == ImageFormat.PNG

    def test_sniff_webp_container(self):
        data = b"RIFF" + b"\x00\x00\x00\x00" + b"WEBPVP8 "
        assert sniff_image_format(data) == ImageFormat.WEBP

    def test_unknown_bytes(self):
        assert sniff_image_format(b"hello world") is None
        assert sniff_image_format(b"") is None

    def test_mime_parameters_ignored(self):
        assert format_from_mime("image/JPEG; charset=binary") == ImageFormat.JPEG
        assert format_from_mime("") is None

    def test_signature_beats_declared_type(self, make_png):
        png = make_png(np.zeros((4, 4, 3), dtype=np.uint8))
        assert detect_image_format(png, "image/jpeg") == ImageFormat.PNG


# ============================================
# DECODING
# ============================================

class TestDecode:
    """Tests for decode_image"""

    def test_png_channels_are_rgb(self, make_png):
        pixels = np.zeros((5, 7, 3), dtype=np.uint8)
        pixels[:, :] = (10, 20, 200)
        raster = decode_image(SourceImage(make_png(pixels), "image/png"))

        assert (raster.width, raster.height) == (7, 5)
        assert raster.channels == 3
        assert tuple(raster.pixels[0, 0]) == (10, 20, 200)

    def test_transparent_png_flattened_to_white(self, make_png):
        pixels = np.zeros((4, 4, 4), dtype=np.uint8)  # fully transparent black
        raster = decode_image(SourceImage(make_png(pixels), "image/png"))

        assert not raster.has_alpha
        assert np.all(raster.pixels == 255)

    def test_gray_png_expanded(self, make_png):
        gray = np.full((3, 3), 90, dtype=np.uint8)
        raster = decode_image(SourceImage(make_png(gray)))

        assert raster.channels == 3
        assert np.all(raster.pixels == 90)

    def test_16bit_png_reduced_to_8bit(self, make_png):
        deep = np.full((2, 2, 3), 65535, dtype=np.uint16)
        raster = decode_image(SourceImage(make_png(deep)))

        assert raster.pixels.dtype == np.uint8
        assert np.all(raster.pixels == 255)

    def test_jpeg_decodes(self, make_jpeg):
        raster = decode_image(SourceImage(make_jpeg(120, 80), "image/jpeg"))
        assert (raster.width, raster.height) == (120, 80)

    def test_empty_data(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_image(SourceImage(b""), index=3)
        assert exc_info.value.index == 3

    def test_unrecognised_bytes(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_image(SourceImage(b"definitely not an image", "image/jpeg"), index=1)
        assert exc_info.value.index == 1
        assert "image index 1" in str(exc_info.value)

    def test_truncated_jpeg(self, make_jpeg):
        with pytest.raises(DecodeError):
            decode_image(SourceImage(make_jpeg()[:20], "image/jpeg"))


class TestFlattenAlpha:
    """Tests for compositing onto white"""

    def test_opaque_pixels_unchanged(self):
        rgba = np.array([[[12, 34, 56, 255]]], dtype=np.uint8)
        assert tuple(flatten_alpha(rgba)[0, 0]) == (12, 34, 56)

    def test_half_transparent_red(self):
        rgba = np.array([[[255, 0, 0, 128]]], dtype=np.uint8)
        r, g, b = flatten_alpha(rgba)[0, 0]
        assert r == 255
        assert g == b == 127


# ============================================
# RESAMPLING
# ============================================

class TestResample:
    """Tests for tier resampling"""

    def test_target_size_landscape(self):
        assert target_size(4000, 3000, 1600) == (1600, 1200)

    def test_target_size_portrait_limits_height(self):
        assert target_size(3000, 4000, 1000) == (750, 1000)

    def test_never_upscales(self):
        assert target_size(800, 600, 2400) == (800, 600)

    def test_small_raster_returned_as_is(self, make_raster):
        raster = make_raster(100, 50)
        assert resample(raster, 1000) is raster

    def test_downscale_keeps_aspect(self, make_raster):
        out = resample(make_raster(2000, 1000), 1000)
        assert (out.width, out.height) == (1000, 500)

    def test_invalid_max_width(self, make_raster):
        with pytest.raises(ValueError):
            resample(make_raster(), 0)

    @pytest.mark.parametrize("tier,expected", [
        (QualityTier.LOW, 1000),
        (QualityTier.MEDIUM, 1600),
        (QualityTier.HIGH, 2000),
    ])
    def test_rasterize_applies_tier(self, make_jpeg, tier, expected):
        raster = rasterize(SourceImage(make_jpeg(2000, 1500)), tier)
        assert raster.width == expected
        assert isinstance(raster, Raster)
