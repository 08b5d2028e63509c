"""
Error taxonomy for the scan-to-PDF pipeline.

Every failure is fatal to the whole generate call: there is no partial
success, no skip-and-continue and no automatic retry. The HTTP layer uses
ErrorClassifier to turn an exception into a user-facing message and status.

Error Classification:
1. Invalid input (empty batch, unknown quality/mode, bad annotation)
2. Decode errors (an image cannot be parsed as a raster)
3. Encoding errors (JPEG compression failed)
4. Emission errors (PDF serialization failed or produced a broken file)
5. Cancellation (user aborted the job)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging


logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Enumeration of all error types"""
    INVALID_INPUT = "invalid_input"
    DECODE_ERROR = "decode_error"
    ENCODING_ERROR = "encoding_error"
    EMISSION_ERROR = "emission_error"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    LOW = "low"  # User aborted, nothing to fix
    MEDIUM = "medium"  # User can fix the input and retry
    HIGH = "high"  # Cannot continue


class PaperScanError(Exception):
    """Base class for pipeline failures"""
    error_type = ErrorType.UNEXPECTED

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.index = index

    def __str__(self) -> str:
        if self.index is None:
            return self.message
        return f"{self.message} (image index {self.index})"


class InvalidInput(PaperScanError, ValueError):
    """Rejected before any processing starts"""
    error_type = ErrorType.INVALID_INPUT


class DecodeError(PaperScanError):
    """Source image could not be parsed as a raster"""
    error_type = ErrorType.DECODE_ERROR


class EncodingError(PaperScanError):
    """JPEG compression stage failed"""
    error_type = ErrorType.ENCODING_ERROR


class EmissionError(PaperScanError):
    """Final PDF serialization failed"""
    error_type = ErrorType.EMISSION_ERROR


class PipelineCancelled(PaperScanError):
    """Cancellation was requested between images"""
    error_type = ErrorType.CANCELLED


@dataclass
class ErrorClassification:
    """Classification result for an error"""
    error_type: ErrorType
    severity: ErrorSeverity
    user_message: str
    system_message: str
    action: str  # 'ask_user', 'block', 'none'
    http_status: int = 500
    index: Optional[int] = None


class ErrorClassifier:
    """Maps pipeline exceptions to user-facing classifications"""

    @staticmethod
    def classify(exc: BaseException) -> ErrorClassification:
        if isinstance(exc, DecodeError):
            position = f" #{exc.index + 1}" if exc.index is not None else ""
            return ErrorClassification(
                error_type=ErrorType.DECODE_ERROR,
                severity=ErrorSeverity.MEDIUM,
                user_message=f"Image{position} could not be read. Remove it and try again.",
                system_message=str(exc),
                action="ask_user",
                http_status=422,
                index=exc.index,
            )

        if isinstance(exc, EncodingError):
            return ErrorClassification(
                error_type=ErrorType.ENCODING_ERROR,
                severity=ErrorSeverity.HIGH,
                user_message="A page could not be compressed. Try a different quality setting.",
                system_message=str(exc),
                action="block",
                http_status=422,
                index=exc.index,
            )

        if isinstance(exc, EmissionError):
            return ErrorClassification(
                error_type=ErrorType.EMISSION_ERROR,
                severity=ErrorSeverity.HIGH,
                user_message="Failed to generate PDF. Please try again.",
                system_message=str(exc),
                action="block",
                http_status=500,
            )

        if isinstance(exc, InvalidInput):
            return ErrorClassification(
                error_type=ErrorType.INVALID_INPUT,
                severity=ErrorSeverity.MEDIUM,
                user_message=exc.message,
                system_message=str(exc),
                action="ask_user",
                http_status=400,
                index=exc.index,
            )

        if isinstance(exc, PipelineCancelled):
            return ErrorClassification(
                error_type=ErrorType.CANCELLED,
                severity=ErrorSeverity.LOW,
                user_message="PDF generation was cancelled.",
                system_message=str(exc),
                action="none",
                http_status=409,
            )

        logger.error(f"[UNCLASSIFIED ERROR] {type(exc).__name__}: {exc}")
        return ErrorClassification(
            error_type=ErrorType.UNEXPECTED,
            severity=ErrorSeverity.HIGH,
            user_message="Something went wrong while generating the PDF.",
            system_message=f"{type(exc).__name__}: {exc}",
            action="block",
            http_status=500,
        )
