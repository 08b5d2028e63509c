"""
Tests for page composition

Tests cover:
1. Fit-to-area placement and the side margin
2. Header band only on page 1, only with an annotation
3. Header text wrapping/truncation
4. Page labels
"""

import pytest
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth

from paperscan.compositor import (
    DEFAULT_MARGIN,
    HEADER_BAND_HEIGHT,
    MAX_SUMMARY_LINES,
    SUMMARY_FONT,
    SUMMARY_SIZE,
    compose_pages,
    content_area,
    fit_image,
    label_position,
    layout_header,
    resolve_page_size,
    truncate_text,
    wrap_text,
)
from paperscan.fonts import CJK_FONT_JAPANESE, CJK_FONT_SIMPLIFIED, font_runs, text_width
from paperscan.models import Annotation, EncodedImage


PAGE_W, PAGE_H = A4


def image(width: int, height: int) -> EncodedImage:
    return EncodedImage(data=b"\xff\xd8\xff", width=width, height=height)


# ============================================
# GEOMETRY
# ============================================

class TestFitImage:
    """Tests for fit_image"""

    def test_wide_image_centred_vertically_within_margins(self):
        area = content_area(PAGE_W, PAGE_H)
        rect = fit_image(4000, 1000, area, PAGE_W)

        assert rect.width == pytest.approx(PAGE_W - 2 * DEFAULT_MARGIN)
        assert rect.height == pytest.approx(rect.width / 4)
        assert rect.x == pytest.approx(DEFAULT_MARGIN)
        assert rect.y + rect.height / 2 == pytest.approx(PAGE_H / 2)

    def test_tall_image_uses_full_height(self):
        area = content_area(PAGE_W, PAGE_H)
        rect = fit_image(100, 1000, area, PAGE_W)

        assert rect.height == pytest.approx(PAGE_H)
        assert rect.width == pytest.approx(PAGE_H / 10)
        assert rect.y == 0
        assert rect.x + rect.width / 2 == pytest.approx(PAGE_W / 2)

    @pytest.mark.parametrize("size", [(1000, 1414), (1414, 1000), (3000, 3000), (500, 4000), (1600, 1200)])
    def test_margin_and_aspect_kept(self, size):
        w, h = size
        area = content_area(PAGE_W, PAGE_H, HEADER_BAND_HEIGHT)
        rect = fit_image(w, h, area, PAGE_W)

        assert rect.width <= PAGE_W - 2 * DEFAULT_MARGIN + 1e-6
        assert rect.x >= DEFAULT_MARGIN - 1e-6
        assert rect.right <= PAGE_W - DEFAULT_MARGIN + 1e-6
        assert rect.y >= HEADER_BAND_HEIGHT - 1e-6
        assert rect.bottom <= PAGE_H + 1e-6
        assert rect.width / rect.height == pytest.approx(w / h)

    def test_header_filling_page_rejected(self):
        with pytest.raises(ValueError):
            content_area(PAGE_W, PAGE_H, PAGE_H)

    def test_content_area_below_header(self):
        area = content_area(PAGE_W, PAGE_H, 96)
        assert (area.x, area.y) == (0.0, 96)
        assert area.height == pytest.approx(PAGE_H - 96)

    def test_label_position(self):
        x, baseline = label_position(PAGE_W, PAGE_H)
        assert x == pytest.approx(PAGE_W - 20 * mm)
        assert baseline == pytest.approx(PAGE_H - 10 * mm)


class TestPageSize:
    """Tests for resolve_page_size"""

    def test_named_sizes(self):
        assert resolve_page_size("a4") == A4
        assert resolve_page_size("Letter") == LETTER

    def test_explicit_size(self):
        assert resolve_page_size((300, 400)) == (300.0, 400.0)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            resolve_page_size("tabloid")


# ============================================
# HEADER TEXT
# ============================================

class TestHeaderText:
    """Tests for header wrapping and truncation"""

    def test_truncate_short_text_unchanged(self):
        assert truncate_text("Invoice", "Helvetica", 10, 200) == "Invoice"

    def test_truncate_long_text(self):
        text = "A very long document title " * 10
        out = truncate_text(text, "Helvetica", 10, 100)
        assert out.endswith("...")
        assert stringWidth(out, "Helvetica", 10) <= 100

    def test_wrap_fits_width(self):
        text = "word " * 60
        lines = wrap_text(text, SUMMARY_FONT, SUMMARY_SIZE, 150)
        assert len(lines) > 1
        assert all(stringWidth(line, SUMMARY_FONT, SUMMARY_SIZE) <= 150 for line in lines)

    def test_wrap_empty(self):
        assert wrap_text("", SUMMARY_FONT, SUMMARY_SIZE, 100) == []

    def test_mixed_script_runs(self):
        runs = font_runs("Invoice 发票 €5", "Helvetica")
        assert runs == [
            ("Invoice ", "Helvetica"),
            ("发票", CJK_FONT_SIMPLIFIED),
            (" €5", "Helvetica"),
        ]

    def test_kana_selects_japanese_font(self):
        runs = font_runs("請求です", "Helvetica")
        assert runs == [("請求です", CJK_FONT_JAPANESE)]

    def test_cjk_width_measured_with_fallback_font(self):
        text = "发票" * 4
        assert text_width(text, "Helvetica", 10) == pytest.approx(stringWidth(text, CJK_FONT_SIMPLIFIED, 10))
        assert text_width(text, "Helvetica", 10) > 0

    def test_cjk_summary_wrapped_and_truncated_within_width(self):
        note = Annotation(document_type="发票" * 40, summary="请求书 " * 120)
        band = layout_header(note, PAGE_W)
        width = band.right - band.left

        assert band.title.endswith("...")
        assert len(band.summary_lines) == MAX_SUMMARY_LINES
        assert all(text_width(line, SUMMARY_FONT, SUMMARY_SIZE) <= width for line in band.summary_lines)

    def test_summary_capped_at_two_lines(self):
        note = Annotation(document_type="Contract", summary="clause " * 200)
        band = layout_header(note, PAGE_W)

        assert len(band.summary_lines) == MAX_SUMMARY_LINES
        assert band.summary_lines[-1].endswith("...")
        assert len(band.summary_baselines) == MAX_SUMMARY_LINES

    def test_band_geometry(self, annotation):
        band = layout_header(annotation, PAGE_W)

        assert band.title == "Invoice"
        assert band.left == pytest.approx(DEFAULT_MARGIN)
        assert band.right == pytest.approx(PAGE_W - DEFAULT_MARGIN)
        assert band.title_baseline < band.summary_baselines[0] < band.rule_y < band.height

    def test_band_too_short(self, annotation):
        with pytest.raises(ValueError):
            layout_header(annotation, PAGE_W, height=60)


# ============================================
# COMPOSITION
# ============================================

class TestComposePages:
    """Tests for compose_pages"""

    def test_one_page_per_image_in_order(self):
        images = [image(800, 600), image(600, 800), image(1000, 1000)]
        pages = compose_pages(images)

        assert [p.image for p in pages] == images
        assert [p.label for p in pages] == ["Page 1 of 3", "Page 2 of 3", "Page 3 of 3"]

    def test_no_header_without_annotation(self):
        pages = compose_pages([image(600, 800), image(600, 800)])
        assert all(p.header is None for p in pages)

    def test_header_only_on_first_page(self, annotation):
        pages = compose_pages([image(600, 800), image(600, 800)], annotation=annotation)

        assert pages[0].header is not None
        assert pages[1].header is None
        assert pages[0].placement.y >= HEADER_BAND_HEIGHT
        assert pages[0].placement.height < pages[1].placement.height

    def test_letter_pages(self):
        pages = compose_pages([image(600, 800)], page_size="letter")
        assert (pages[0].page_width, pages[0].page_height) == LETTER
