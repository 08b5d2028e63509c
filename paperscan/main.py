"""
FastAPI Main Application - HTTP surface for scan-to-PDF generation.

1. Client uploads page photos (+ quality, mode, optional AI annotation)
2. Backend validates the whole request up front
3. Pipeline builds the PDF (inline, or as a background job)
4. Client downloads the PDF or a page preview
"""

import json
import logging
from typing import List, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from paperscan.annotation import coerce_annotation, suggested_filename
from paperscan.config import settings
from paperscan.errors import ErrorClassifier, InvalidInput, PaperScanError
from paperscan.job_queue import JobStatus, job_queue
from paperscan.models import (
    Annotation,
    JobCreatedResponse,
    JobStatusResponse,
    QualityTier,
    SourceImage,
    VisualMode,
)
from paperscan.pipeline import generate_document, validate_request
from paperscan.preview import render_preview


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================
# FASTAPI APP INITIALIZATION
# ============================================

app = FastAPI(
    title="PaperScan",
    description="Turn photographed document pages into one clean PDF",
    version="0.1.0"
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# STARTUP / SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Schedule eviction of finished jobs"""
    scheduler = BackgroundScheduler()
    scheduler.add_job(job_queue.cleanup_old_jobs, 'interval', minutes=5)
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info(
        f"PaperScan started (page size {settings.page_size}, "
        f"jobs kept {settings.job_retention_minutes} minutes)"
    )


@app.on_event("shutdown")
async def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info("PaperScan shutting down")


# ============================================
# HELPER FUNCTIONS
# ============================================

def error_to_http(exc: BaseException) -> HTTPException:
    """Translate a pipeline exception into an HTTP error with a friendly message"""
    classification = ErrorClassifier.classify(exc)
    logger.warning(f"[REQUEST FAILED] {classification.system_message}")
    return HTTPException(
        status_code=classification.http_status,
        detail={
            "error_type": classification.error_type.value,
            "message": classification.user_message,
            "index": classification.index,
        },
    )


async def read_uploaded_images(files: List[UploadFile]) -> List[SourceImage]:
    """
    Read uploads into SourceImages, enforcing count and size limits.

    Raises:
        InvalidInput: If a limit is exceeded
    """
    if len(files) > settings.max_images:
        raise InvalidInput(f"Too many files. Maximum {settings.max_images} files allowed.")

    max_size_bytes = settings.max_file_size_mb * 1024 * 1024
    images: List[SourceImage] = []
    for i, file in enumerate(files):
        data = await file.read()
        if len(data) > max_size_bytes:
            raise InvalidInput(
                f"File {file.filename} exceeds {settings.max_file_size_mb}MB limit", index=i
            )
        images.append(
            SourceImage(data=data, mime_type=file.content_type or "", name=file.filename or "")
        )
    return images


async def parse_request(
    files: List[UploadFile],
    quality: str,
    mode: str,
    annotation: Optional[str],
) -> Tuple[List[SourceImage], QualityTier, VisualMode, Optional[Annotation], str]:
    """Validate the whole form before any processing starts"""
    images = await read_uploaded_images(files)

    raw_annotation = None
    if annotation and annotation.strip():
        try:
            raw_annotation = json.loads(annotation)
        except ValueError as e:
            raise InvalidInput(f"Annotation is not valid JSON: {e}") from e

    sources, tier, visual_mode, note = validate_request(
        images, quality, mode, coerce_annotation(raw_annotation), max_images=settings.max_images
    )
    return sources, tier, visual_mode, note, suggested_filename(raw_annotation)


def pdf_response(pdf_bytes: bytes, filename: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================
# API ENDPOINTS
# ============================================

@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "service": "PaperScan",
        "status": "running",
        "version": "0.1.0",
        "jobs": job_queue.get_stats(),
    }


@app.post("/generate")
async def generate_pdf(
    files: List[UploadFile] = File(..., description="Page images, in page order"),
    quality: str = Form(settings.default_quality, description="low, medium or high"),
    mode: str = Form(settings.default_mode, description="Visual enhancement mode"),
    annotation: Optional[str] = Form(None, description="AI analysis result as JSON"),
):
    """
    Build the PDF inline and return it.

    Example:
    - Upload 3 JPEG photos
    - quality=high, mode=document_contrast
    - annotation={"documentType": "Invoice", "summary": "...", "extractedData": [...]}
    """
    try:
        sources, tier, visual_mode, note, filename = await parse_request(files, quality, mode, annotation)
        pdf_bytes = await run_in_threadpool(generate_document, sources, tier, visual_mode, note)
    except PaperScanError as e:
        raise error_to_http(e)

    return pdf_response(pdf_bytes, filename)


@app.post("/jobs", response_model=JobCreatedResponse, status_code=202)
async def create_job(
    files: List[UploadFile] = File(..., description="Page images, in page order"),
    quality: str = Form(settings.default_quality),
    mode: str = Form(settings.default_mode),
    annotation: Optional[str] = Form(None),
):
    """Start PDF generation in the background and return a job ID to poll"""
    try:
        sources, tier, visual_mode, note, filename = await parse_request(files, quality, mode, annotation)
    except PaperScanError as e:
        raise error_to_http(e)

    job_id = job_queue.create_job(sources, tier, visual_mode, note, filename=filename)
    logger.info(f"[JOB] {job_id} created with {len(sources)} images")
    return JobCreatedResponse(job_id=job_id, status=JobStatus.PENDING.value)


def _get_job_or_404(job_id: str):
    job = job_queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@app.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str):
    job = _get_job_or_404(job_id)
    return JobStatusResponse(
        job_id=job.id,
        status=job.status.value,
        progress=job.progress,
        progress_message=job.progress_message,
        page_count=job.page_count,
        filename=job.filename,
        error_type=job.error_type,
        error_message=job.error_message,
        error_index=job.error_index,
    )


@app.delete("/jobs/{job_id}")
async def cancel_job(job_id: str):
    """Cancel a pending or running job (stops before its next page)"""
    _get_job_or_404(job_id)
    if not job_queue.cancel_job(job_id):
        raise HTTPException(status_code=409, detail="Job already finished")
    return {"status": "cancelling", "job_id": job_id}


def _completed_pdf(job_id: str) -> Tuple[bytes, str]:
    job = _get_job_or_404(job_id)
    if job.status != JobStatus.COMPLETED or job.result_pdf is None:
        raise HTTPException(status_code=409, detail=f"Job is {job.status.value}, no PDF available")
    return job.result_pdf, job.filename


@app.get("/jobs/{job_id}/download")
async def download_job_pdf(job_id: str):
    pdf_bytes, filename = _completed_pdf(job_id)
    return pdf_response(pdf_bytes, filename)


@app.get("/jobs/{job_id}/preview")
async def preview_job_page(
    job_id: str,
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    dpi: int = Query(72, ge=10, le=300),
):
    """Render one page of a finished job as PNG"""
    pdf_bytes, _ = _completed_pdf(job_id)
    try:
        png = await run_in_threadpool(render_preview, pdf_bytes, page, dpi)
    except PaperScanError as e:
        raise error_to_http(e)
    return Response(content=png, media_type="image/png")


# ============================================
# RUN SERVER (for development)
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "paperscan.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
