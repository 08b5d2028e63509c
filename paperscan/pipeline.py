"""
Pipeline - the generate_document entry point.

Flow per call:
1. Validate the request (fail fast, nothing processed yet)
2. For each image, in order: rasterize -> enhance -> encode
3. Compose pages (header band on page 1 when annotated)
4. Emit and verify the PDF

Per-image work has no cross-image dependency and may run on a thread
pool; results are always collected in input order. Cancellation is
cooperative and checked before each image is started. Any failure aborts
the whole call: no partial documents, no retries.
"""

import logging
import time
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import cv2
from reportlab.lib.units import mm

from paperscan.annotation import build_metadata, coerce_annotation
from paperscan.compositor import compose_pages
from paperscan.config import Settings, settings as default_settings
from paperscan.emitter import emit
from paperscan.encoder import encode
from paperscan.enhancement import enhance
from paperscan.errors import (
    DecodeError,
    EncodingError,
    InvalidInput,
    PaperScanError,
    PipelineCancelled,
)
from paperscan.models import (
    Annotation,
    EncodedImage,
    QualityTier,
    SourceImage,
    VisualMode,
)
from paperscan.rasterizer import rasterize


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


# ============================================
# VALIDATION
# ============================================

def _coerce_enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Unknown {what} {value!r}. Valid values: {valid}") from None


def validate_request(
    images: Sequence[Union[SourceImage, bytes]],
    quality: Union[QualityTier, str],
    mode: Union[VisualMode, str],
    annotation: Any = None,
    max_images: Optional[int] = None,
) -> Tuple[List[SourceImage], QualityTier, VisualMode, Optional[Annotation]]:
    """
    Check everything that can be checked before any pixel is touched.

    Raises:
        InvalidInput: Empty batch, non-image entries, unknown tier/mode,
        malformed annotation, too many images
    """
    if images is None or len(images) == 0:
        raise InvalidInput("At least one image is required")
    if max_images is not None and len(images) > max_images:
        raise InvalidInput(f"Too many images. Maximum {max_images} images allowed.")

    sources: List[SourceImage] = []
    for i, image in enumerate(images):
        if isinstance(image, (bytes, bytearray)):
            image = SourceImage(data=bytes(image))
        if not isinstance(image, SourceImage):
            raise InvalidInput(f"Expected image bytes, got {type(image).__name__}", index=i)
        sources.append(image)

    tier = _coerce_enum(QualityTier, quality, "quality tier")
    visual_mode = _coerce_enum(VisualMode, mode, "visual mode")
    note = coerce_annotation(annotation)
    return sources, tier, visual_mode, note


# ============================================
# PER-IMAGE PROCESSING
# ============================================

def _raise_if_cancelled(cancel_event: Optional[threading.Event], where: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelled(f"Cancelled {where}")


def process_image(
    index: int,
    source: SourceImage,
    quality: QualityTier,
    mode: VisualMode,
) -> EncodedImage:
    """
    rasterize -> enhance -> encode for one image.

    Every failure comes out as a PaperScanError carrying the image index.
    """
    try:
        raster = rasterize(source, quality, index=index)
    except (cv2.error, MemoryError, ValueError) as e:
        raise DecodeError(f"Image could not be resampled: {e}", index=index) from e

    try:
        raster = enhance(raster, mode)
        return encode(raster, quality.compression)
    except EncodingError as e:
        e.index = index
        raise
    except PaperScanError:
        raise
    except (cv2.error, MemoryError, ValueError) as e:
        raise EncodingError(f"Page could not be processed: {e}", index=index) from e


def _process_all(
    sources: List[SourceImage],
    quality: QualityTier,
    mode: VisualMode,
    workers: int,
    cancel_event: Optional[threading.Event],
    progress: Optional[ProgressCallback],
) -> List[EncodedImage]:
    total = len(sources)

    if workers <= 1 or total == 1:
        results = []
        for i, source in enumerate(sources):
            _raise_if_cancelled(cancel_event, f"before image {i}")
            results.append(process_image(i, source, quality, mode))
            if progress:
                progress(i + 1, total)
        return results

    def task(i: int, source: SourceImage) -> EncodedImage:
        _raise_if_cancelled(cancel_event, f"before image {i}")
        return process_image(i, source, quality, mode)

    executor = ThreadPoolExecutor(max_workers=min(workers, total), thread_name_prefix="paperscan")
    try:
        futures = [executor.submit(task, i, source) for i, source in enumerate(sources)]
        results = []
        # Collect strictly in input order; the first failure in that order wins
        for i, future in enumerate(futures):
            results.append(future.result())
            if progress:
                progress(i + 1, total)
        return results
    finally:
        executor.shutdown(wait=True, cancel_futures=True)


# ============================================
# ENTRY POINT
# ============================================

def generate_document(
    images: Sequence[Union[SourceImage, bytes]],
    quality: Union[QualityTier, str] = QualityTier.MEDIUM,
    mode: Union[VisualMode, str] = VisualMode.ORIGINAL,
    annotation: Any = None,
    *,
    settings: Optional[Settings] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressCallback] = None,
    invariant: bool = False,
) -> bytes:
    """
    Turn an ordered batch of page photos into one PDF.

    Args:
        images: Non-empty, order-significant list of images
        quality: QualityTier or its value ("low", "medium", "high")
        mode: VisualMode or its value
        annotation: Optional AI result (Annotation, AnalysisResult, dict or JSON)
        settings: Overrides the global settings
        cancel_event: Checked before each image; set it to abort
        progress: Called as progress(done, total) after each image
        invariant: Produce byte-stable output (fixed PDF timestamps/ID)

    Returns:
        bytes: PDF with exactly len(images) pages in input order

    Raises:
        InvalidInput, DecodeError, EncodingError, EmissionError, PipelineCancelled
    """
    cfg = settings or default_settings
    sources, tier, visual_mode, note = validate_request(
        images, quality, mode, annotation, max_images=cfg.max_images
    )
    total = len(sources)

    logger.info(
        f"[PIPELINE] {total} images, quality={tier.value}, mode={visual_mode.value}, "
        f"annotated={'yes' if note is not None else 'no'}"
    )
    start = time.perf_counter()

    encoded = _process_all(sources, tier, visual_mode, cfg.max_workers, cancel_event, progress)

    pages = compose_pages(
        encoded,
        page_size=cfg.page_size,
        annotation=note,
        margin=cfg.page_margin_mm * mm,
        header_height=cfg.header_band_height,
    )
    _raise_if_cancelled(cancel_event, "before emission")

    data = emit(pages, build_metadata(note), invariant=invariant)

    logger.info(f"[PIPELINE] done in {time.perf_counter() - start:.2f}s ({len(data)} bytes)")
    return data
