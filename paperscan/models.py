"""
Data models for the scan-to-PDF pipeline.

Pydantic models describe what crosses the outer boundary (the AI annotation,
document metadata, API responses). Plain dataclasses hold the in-process
pipeline values (rasters, encoded images, composed pages).
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


# ============================================
# PIPELINE OPTIONS
# ============================================

class QualityTier(str, Enum):
    """Output quality presets (max raster size + JPEG compression)"""
    LOW = "low"        # Smallest file size. Good for text docs.
    MEDIUM = "medium"  # Balanced. Best for email sharing.
    HIGH = "high"      # Highest detail. Best for printing.

    @property
    def max_width(self) -> int:
        return QUALITY_PRESETS[self][0]

    @property
    def compression(self) -> float:
        return QUALITY_PRESETS[self][1]


# tier -> (max pixel width, compression factor)
QUALITY_PRESETS: dict[QualityTier, Tuple[int, float]] = {
    QualityTier.LOW: (1000, 0.50),
    QualityTier.MEDIUM: (1600, 0.75),
    QualityTier.HIGH: (2400, 0.92),
}


class VisualMode(str, Enum):
    """Filter applied to every page before encoding"""
    ORIGINAL = "original"
    GRAYSCALE = "grayscale"
    DOCUMENT_CONTRAST = "document_contrast"
    SHADOW_REMOVAL = "shadow_removal"


# ============================================
# PIPELINE VALUES
# ============================================

@dataclass(frozen=True)
class SourceImage:
    """Raw uploaded image bytes, consumed once by the pipeline."""
    data: bytes
    mime_type: str = "application/octet-stream"
    name: str = ""


@dataclass
class Raster:
    """
    Decoded pixel grid, row-major, shape (height, width, channels).

    Channels are RGB (3) or RGBA (4), one unsigned byte per sample.
    """
    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Raster samples must be uint8, got {self.pixels.dtype}")
        if self.pixels.ndim != 3 or self.pixels.shape[2] not in (3, 4):
            raise ValueError(f"Raster must have shape (h, w, 3|4), got {self.pixels.shape}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Raster dimensions must be positive, got {self.width}x{self.height}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4


@dataclass(frozen=True)
class EncodedImage:
    """JPEG byte stream plus the pixel size it was encoded at."""
    data: bytes
    width: int
    height: int

    @property
    def aspect(self) -> float:
        return self.width / float(self.height)


@dataclass(frozen=True)
class Placement:
    """Image rectangle on a page, in points, origin at the top-left corner."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class HeaderBand:
    """Annotation header reserved at the top of page 1 (points, top-left origin)."""
    title: str
    summary_lines: Tuple[str, ...]
    height: float
    left: float
    right: float
    title_baseline: float
    summary_baselines: Tuple[float, ...]
    rule_y: float


@dataclass
class Page:
    index: int  # 1-based
    total: int
    image: EncodedImage
    placement: Placement
    page_width: float
    page_height: float
    header: Optional[HeaderBand] = None

    @property
    def label(self) -> str:
        return f"Page {self.index} of {self.total}"


# ============================================
# ANNOTATION (EXTERNAL AI RESULT)
# ============================================

class ExtractedField(BaseModel):
    """One label/value pair read off the document by the AI service"""
    label: str
    value: str = ""


class Annotation(BaseModel):
    """
    Descriptive record embossed into page 1 and the PDF metadata.

    Produced by the external vision-AI service and never modified here.
    Accepts both the service's camelCase keys and snake_case.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    document_type: str = Field("", alias="documentType")
    summary: str = ""
    extracted_data: List[ExtractedField] = Field(default_factory=list, alias="extractedData")


class AnalysisResult(Annotation):
    """Full response contract of the AI document analysis call"""
    suggested_filename: str = Field("", alias="suggestedFilename")

    def to_annotation(self) -> Annotation:
        return Annotation(
            document_type=self.document_type,
            summary=self.summary,
            extracted_data=list(self.extracted_data),
        )


class DocumentMetadata(BaseModel):
    """Standard PDF Info fields"""
    title: str = ""
    subject: str = ""
    keywords: List[str] = Field(default_factory=list)


# ============================================
# API RESPONSE MODELS
# ============================================

class JobCreatedResponse(BaseModel):
    job_id: str
    status: str


class JobStatusResponse(BaseModel):
    """Progress report for a background generation job"""
    job_id: str
    status: Literal["pending", "processing", "completed", "failed", "cancelled"]
    progress: int
    progress_message: str
    page_count: int
    filename: str
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_index: Optional[int] = None
