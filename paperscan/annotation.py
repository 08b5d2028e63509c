"""
Annotation helpers - turn the AI analysis result into header/metadata input.

The analysis itself happens outside this package; these helpers only
validate its shape and format it. Content is never altered beyond
whitespace trimming.
"""

import re
import json
import logging
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from paperscan.errors import InvalidInput
from paperscan.models import AnalysisResult, Annotation, DocumentMetadata


logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "paperwork_scan"

RE_NON_FILENAME = re.compile(r"[^a-z0-9]+")


def coerce_annotation(value: Union[None, str, dict, Annotation]) -> Optional[Annotation]:
    """
    Accept an Annotation, an AnalysisResult, a mapping or a JSON string.

    Raises:
        InvalidInput: If the value does not match the annotation shape
    """
    if value is None:
        return None
    if isinstance(value, AnalysisResult):
        return value.to_annotation()
    if isinstance(value, Annotation):
        return value

    try:
        if isinstance(value, (str, bytes)):
            if not value.strip():
                return None
            value = json.loads(value)
        if not isinstance(value, dict):
            raise InvalidInput(f"Annotation must be an object, got {type(value).__name__}")
        return AnalysisResult.model_validate(value).to_annotation()
    except (ValueError, ValidationError) as e:
        if isinstance(e, InvalidInput):
            raise
        raise InvalidInput(f"Invalid annotation: {e}") from e


def keyword_labels(annotation: Annotation) -> List[str]:
    """Extracted field labels, trimmed, empty ones dropped, first occurrence kept."""
    seen = set()
    labels: List[str] = []
    for field in annotation.extracted_data:
        label = field.label.strip()
        if not label or label.lower() in seen:
            continue
        seen.add(label.lower())
        labels.append(label)
    return labels


def build_metadata(annotation: Optional[Annotation]) -> Optional[DocumentMetadata]:
    """title = document type, subject = summary, keywords = extracted labels"""
    if annotation is None:
        return None
    return DocumentMetadata(
        title=annotation.document_type.strip(),
        subject=annotation.summary.strip(),
        keywords=keyword_labels(annotation),
    )


def suggested_filename(analysis: Optional[Any] = None, default: str = DEFAULT_FILENAME) -> str:
    """
    Download name for the generated PDF, in snake_case with a .pdf suffix.

    Uses the AI's suggestedFilename when there is one.
    """
    raw = ""
    if isinstance(analysis, AnalysisResult):
        raw = analysis.suggested_filename
    elif isinstance(analysis, dict):
        raw = str(analysis.get("suggestedFilename") or analysis.get("suggested_filename") or "")
    elif isinstance(analysis, str):
        raw = analysis

    stem = raw.strip().lower()
    if stem.endswith(".pdf"):
        stem = stem[:-4]
    stem = RE_NON_FILENAME.sub("_", stem).strip("_")[:80].strip("_")
    return f"{stem or default}.pdf"
