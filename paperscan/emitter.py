"""
Document Emitter - serialize composed pages into one PDF byte string.

Pages are drawn with the reportlab canvas (JPEG data is embedded as-is),
document metadata goes into the standard Info dictionary, and the result
is read back with pypdf before it is returned so a broken or short file
never reaches the caller.
"""

import io
import logging
from typing import Optional, Sequence

from pypdf import PdfReader
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from paperscan.compositor import (
    LABEL_FONT,
    LABEL_SIZE,
    SUMMARY_FONT,
    SUMMARY_SIZE,
    TITLE_FONT,
    TITLE_SIZE,
    label_position,
)
from paperscan.errors import EmissionError
from paperscan.fonts import draw_text
from paperscan.models import DocumentMetadata, Page


logger = logging.getLogger(__name__)

CREATOR = "PaperScan"

LABEL_GRAY = 150 / 255.0
SUMMARY_GRAY = 0.25
RULE_GRAY = 0.7


def emit(
    pages: Sequence[Page],
    metadata: Optional[DocumentMetadata] = None,
    invariant: bool = False,
) -> bytes:
    """
    Render pages to a complete PDF document.

    Args:
        pages: Composed pages, in output order
        metadata: Title/subject/keywords for the Info dictionary
        invariant: Fixed timestamps and file ID, so output is byte-stable

    Returns:
        bytes: A self-contained PDF

    Raises:
        EmissionError: If drawing, saving or the integrity check fails
    """
    if not pages:
        raise EmissionError("No pages to emit")

    buf = io.BytesIO()
    try:
        first = pages[0]
        c = canvas.Canvas(
            buf,
            pagesize=(first.page_width, first.page_height),
            invariant=1 if invariant else 0,
            pageCompression=1,
        )
        c.setCreator(CREATOR)
        # reportlab fills unset Info fields with placeholders ("untitled", "anonymous")
        meta = metadata or DocumentMetadata()
        c.setTitle(meta.title)
        c.setAuthor("")
        c.setSubject(meta.subject)
        c.setKeywords(", ".join(meta.keywords))

        for page in pages:
            c.setPageSize((page.page_width, page.page_height))
            _draw_image(c, page)
            if page.header is not None:
                _draw_header(c, page)
            # Label last so the image never covers it
            _draw_label(c, page)
            c.showPage()

        c.save()
    except Exception as e:
        raise EmissionError(f"PDF serialization failed: {e}") from e

    data = buf.getvalue()
    verify_document(data, len(pages), metadata)
    logger.info(f"[EMIT] {len(pages)} pages, {len(data)} bytes")
    return data


def _draw_image(c: "canvas.Canvas", page: Page) -> None:
    rect = page.placement
    # reportlab's origin is bottom-left
    y = page.page_height - rect.y - rect.height
    c.drawImage(
        ImageReader(io.BytesIO(page.image.data)),
        rect.x,
        y,
        width=rect.width,
        height=rect.height,
    )


def _draw_header(c: "canvas.Canvas", page: Page) -> None:
    band = page.header
    h = page.page_height

    c.setFillColorRGB(0, 0, 0)
    draw_text(c, band.left, h - band.title_baseline, band.title, TITLE_FONT, TITLE_SIZE)

    c.setFillColorRGB(SUMMARY_GRAY, SUMMARY_GRAY, SUMMARY_GRAY)
    for line, baseline in zip(band.summary_lines, band.summary_baselines):
        draw_text(c, band.left, h - baseline, line, SUMMARY_FONT, SUMMARY_SIZE)

    c.setStrokeColorRGB(RULE_GRAY, RULE_GRAY, RULE_GRAY)
    c.setLineWidth(0.75)
    c.line(band.left, h - band.rule_y, band.right, h - band.rule_y)


def _draw_label(c: "canvas.Canvas", page: Page) -> None:
    x, baseline = label_position(page.page_width, page.page_height)
    c.setFont(LABEL_FONT, LABEL_SIZE)
    c.setFillColorRGB(LABEL_GRAY, LABEL_GRAY, LABEL_GRAY)
    c.drawRightString(x, page.page_height - baseline, page.label)


def verify_document(
    data: bytes,
    expected_pages: int,
    metadata: Optional[DocumentMetadata] = None,
) -> None:
    """
    Output integrity check: non-empty, parseable, right page count, metadata present.

    Raises:
        EmissionError: If any check fails
    """
    if not data:
        raise EmissionError("Output is empty")
    if not data.startswith(b"%PDF-"):
        raise EmissionError("Output is not a PDF")

    try:
        reader = PdfReader(io.BytesIO(data))
        page_count = len(reader.pages)
        info = reader.metadata
    except Exception as e:
        raise EmissionError(f"Output PDF is corrupt: {e}") from e

    if page_count != expected_pages:
        raise EmissionError(f"Output has {page_count} pages, expected {expected_pages}")

    if metadata is not None and metadata.title:
        title = (info.title if info is not None else None) or ""
        if title != metadata.title:
            raise EmissionError("Document title missing from PDF metadata")
