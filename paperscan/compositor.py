"""
Page Compositor - place encoded images on fixed-size pages.

All geometry is in PDF points with the origin at the top-left corner of
the page and y growing downwards; the emitter flips it for reportlab.

Layout rules:
- every image gets exactly one page, in input order
- with an annotation, page 1 reserves a header band at the top; the image
  is fitted into what is left, pages 2..N use the whole page
- images are scaled to fit their content area, centred, and then shrunk
  further if needed so a side margin is always kept
- a "Page i of N" label sits in the bottom-right corner of every page
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.units import mm

from paperscan.fonts import text_width
from paperscan.models import Annotation, EncodedImage, HeaderBand, Page, Placement


logger = logging.getLogger(__name__)


PAGE_SIZES = {
    "a4": A4,
    "letter": LETTER,
}

DEFAULT_MARGIN = 10 * mm
HEADER_BAND_HEIGHT = 96.0
HEADER_MIN_HEIGHT = 72.0

TITLE_FONT = "Helvetica-Bold"
TITLE_SIZE = 16
SUMMARY_FONT = "Helvetica"
SUMMARY_SIZE = 10
SUMMARY_LINE_HEIGHT = 13
MAX_SUMMARY_LINES = 2
HEADER_TOP_PADDING = 12.0
RULE_BOTTOM_PADDING = 10.0

LABEL_FONT = "Helvetica"
LABEL_SIZE = 10
LABEL_RIGHT_INSET = 20 * mm
LABEL_BOTTOM_INSET = 10 * mm

ELLIPSIS = "..."


def resolve_page_size(page_size: Union[str, Tuple[float, float]]) -> Tuple[float, float]:
    """Accept a named size ('a4', 'letter') or an explicit (width, height)."""
    if isinstance(page_size, str):
        try:
            return PAGE_SIZES[page_size.lower()]
        except KeyError:
            raise ValueError(f"Unknown page size: {page_size}") from None
    width, height = page_size
    return float(width), float(height)


# ============================================
# TEXT LAYOUT
# ============================================

def truncate_text(text: str, font_name: str, font_size: float, max_width: float) -> str:
    """Shorten text with a trailing ellipsis until it fits max_width."""
    if text_width(text, font_name, font_size) <= max_width:
        return text
    shortened = text.rstrip()
    while shortened and text_width(shortened + ELLIPSIS, font_name, font_size) > max_width:
        shortened = shortened[:-1]
    return shortened.rstrip() + ELLIPSIS


def wrap_text(text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    """Greedy word wrap using the advance widths of the fonts that will draw it."""
    words = (text or "").split()
    if not words:
        return []
    lines: List[str] = []
    cur: List[str] = []
    for w in words:
        trial = " ".join(cur + [w])
        if text_width(trial, font_name, font_size) <= max_width:
            cur.append(w)
        else:
            if cur:
                lines.append(" ".join(cur))
            cur = [w]
    if cur:
        lines.append(" ".join(cur))
    # A single word wider than the line still has to fit
    return [truncate_text(line, font_name, font_size, max_width) for line in lines]


def layout_header(
    annotation: Annotation,
    page_width: float,
    height: float = HEADER_BAND_HEIGHT,
    margin: float = DEFAULT_MARGIN,
) -> HeaderBand:
    """Title line, up to two summary lines and a separator rule."""
    if height < HEADER_MIN_HEIGHT:
        raise ValueError(f"Header band must be at least {HEADER_MIN_HEIGHT}pt tall, got {height}")

    left = margin
    right = page_width - margin
    max_width = right - left

    title = truncate_text(annotation.document_type.strip(), TITLE_FONT, TITLE_SIZE, max_width)

    lines = wrap_text(annotation.summary, SUMMARY_FONT, SUMMARY_SIZE, max_width)
    if len(lines) > MAX_SUMMARY_LINES:
        overflow = " ".join(lines[MAX_SUMMARY_LINES - 1:])
        lines = lines[:MAX_SUMMARY_LINES - 1] + [
            truncate_text(overflow, SUMMARY_FONT, SUMMARY_SIZE, max_width)
        ]

    title_baseline = HEADER_TOP_PADDING + TITLE_SIZE
    summary_baselines = tuple(
        title_baseline + 6 + SUMMARY_LINE_HEIGHT * (i + 1) for i in range(len(lines))
    )

    return HeaderBand(
        title=title,
        summary_lines=tuple(lines),
        height=height,
        left=left,
        right=right,
        title_baseline=title_baseline,
        summary_baselines=summary_baselines,
        rule_y=height - RULE_BOTTOM_PADDING,
    )


# ============================================
# GEOMETRY
# ============================================

def content_area(page_width: float, page_height: float, header_height: float = 0.0) -> Placement:
    """Region available for the image once the header band is taken out."""
    if header_height >= page_height:
        raise ValueError(f"Header band ({header_height}pt) leaves no room on a {page_height:.1f}pt page")
    return Placement(x=0.0, y=header_height, width=page_width, height=page_height - header_height)


def fit_image(
    image_width: int,
    image_height: int,
    area: Placement,
    page_width: float,
    margin: float = DEFAULT_MARGIN,
) -> Placement:
    """
    Scale an image to fit the content area, centred, keeping its aspect.

    If the fitted width leaves less than `margin` on either side of the page,
    both dimensions are shrunk uniformly until it does.
    """
    image_aspect = image_width / float(image_height)
    area_aspect = area.width / area.height

    if image_aspect > area_aspect:
        # Image is wider than the area
        width = area.width
        height = width / image_aspect
        x = area.x
        y = area.y + (area.height - height) / 2
    else:
        height = area.height
        width = height * image_aspect
        x = area.x + (area.width - width) / 2
        y = area.y

    max_width = page_width - 2 * margin
    if width > max_width:
        scale = max_width / width
        width *= scale
        height *= scale
        x = area.x + (area.width - width) / 2
        y = area.y + (area.height - height) / 2

    return Placement(x=x, y=y, width=width, height=height)


def label_position(page_width: float, page_height: float) -> Tuple[float, float]:
    """Right edge and baseline of the page label."""
    return page_width - LABEL_RIGHT_INSET, page_height - LABEL_BOTTOM_INSET


# ============================================
# PAGE COMPOSITION
# ============================================

def compose_pages(
    images: Sequence[EncodedImage],
    page_size: Union[str, Tuple[float, float]] = "a4",
    annotation: Optional[Annotation] = None,
    margin: float = DEFAULT_MARGIN,
    header_height: float = HEADER_BAND_HEIGHT,
) -> List[Page]:
    """
    Build one page per image, in order.

    Returns:
        List[Page]: len(images) pages; only page 1 carries a header band,
        and only when an annotation is given
    """
    page_width, page_height = resolve_page_size(page_size)
    total = len(images)
    pages: List[Page] = []

    header = None
    if annotation is not None:
        header = layout_header(annotation, page_width, height=header_height, margin=margin)

    for i, image in enumerate(images, start=1):
        band = header if i == 1 else None
        area = content_area(page_width, page_height, band.height if band else 0.0)
        placement = fit_image(image.width, image.height, area, page_width, margin=margin)
        pages.append(
            Page(
                index=i,
                total=total,
                image=image,
                placement=placement,
                page_width=page_width,
                page_height=page_height,
                header=band,
            )
        )

    logger.debug(f"[COMPOSE] {total} pages on {page_width:.1f}x{page_height:.1f}pt, header={'yes' if header else 'no'}")
    return pages
