"""
Preview rendering - rasterize a page of a generated PDF for display.

Used by the preview endpoint so the document can be checked before it
is downloaded.
"""

import logging

import fitz  # PyMuPDF

from paperscan.errors import InvalidInput


logger = logging.getLogger(__name__)


def render_preview(pdf_bytes: bytes, page_number: int = 1, dpi: int = 72, fmt: str = "png") -> bytes:
    """
    Render one page (1-indexed) to an image.

    Raises:
        InvalidInput: If the page number is out of range or dpi is not positive
    """
    if dpi <= 0:
        raise InvalidInput(f"dpi must be positive, got {dpi}")

    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        if page_number < 1 or page_number > doc.page_count:
            raise InvalidInput(f"Invalid page number: {page_number}. PDF has {doc.page_count} pages.")
        page = doc.load_page(page_number - 1)
        pix = page.get_pixmap(dpi=dpi, alpha=False)
        logger.debug(f"[PREVIEW] page {page_number} at {dpi}dpi -> {pix.width}x{pix.height}")
        return pix.tobytes(fmt)
    finally:
        doc.close()
