"""
Job Queue for background PDF generation.

Generation is CPU-bound, so the HTTP layer hands it to a background thread
and reports progress/completion through job status polling.

- Bounded concurrency (default 1 job at a time)
- Progress reported per processed image
- Cooperative cancellation, also while a job is running
- Old jobs (and their PDF bytes) evicted after a retention period
"""

import time
import uuid
import logging
from dataclasses import dataclass, field
from threading import Event, Lock, Thread
from typing import Callable, List, Optional
from enum import Enum

from paperscan.config import settings
from paperscan.errors import ErrorClassifier, PipelineCancelled
from paperscan.models import Annotation, QualityTier, SourceImage, VisualMode
from paperscan.pipeline import generate_document


logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Job lifecycle states"""
    PENDING = "pending"       # Job created, waiting for a slot
    PROCESSING = "processing" # Actively being processed
    COMPLETED = "completed"   # PDF ready for download
    FAILED = "failed"         # Failed with error
    CANCELLED = "cancelled"   # Cancelled by user


@dataclass
class JobInfo:
    """Stores all information about a job"""
    id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0  # 0-100
    progress_message: str = "Initializing..."
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    # Input data (released once the job finishes)
    images: List[SourceImage] = field(default_factory=list, repr=False)
    quality: QualityTier = QualityTier.MEDIUM
    mode: VisualMode = VisualMode.ORIGINAL
    annotation: Optional[Annotation] = None
    filename: str = "paperwork_scan.pdf"
    page_count: int = 0

    # Output data
    result_pdf: Optional[bytes] = field(default=None, repr=False)
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_index: Optional[int] = None

    cancel_event: Event = field(default_factory=Event, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class JobQueue:
    """
    Thread-safe job table with background processing.

    The processor receives the queue and a job ID; the default one runs
    generate_document for the job's images.
    """

    def __init__(self, max_concurrent: int = 1, cleanup_after_minutes: int = 15):
        self._jobs: dict[str, JobInfo] = {}
        self._lock = Lock()
        self._max_concurrent = max_concurrent
        self._cleanup_after_seconds = cleanup_after_minutes * 60
        self._processing_count = 0
        self._processor_func: Callable[["JobQueue", str], None] = run_generation_job

    def set_processor(self, func: Callable[["JobQueue", str], None]):
        """Set the function that processes jobs"""
        self._processor_func = func

    def create_job(
        self,
        images: List[SourceImage],
        quality: QualityTier,
        mode: VisualMode,
        annotation: Optional[Annotation] = None,
        filename: str = "paperwork_scan.pdf",
    ) -> str:
        """Create a new job, start it in the background and return its ID"""
        job_id = str(uuid.uuid4())[:12]  # Short IDs are easier to work with

        job = JobInfo(
            id=job_id,
            images=list(images),
            quality=quality,
            mode=mode,
            annotation=annotation,
            filename=filename,
            page_count=len(images),
        )

        with self._lock:
            self._jobs[job_id] = job

        self._start_processing(job_id)
        return job_id

    def get_job(self, job_id: str) -> Optional[JobInfo]:
        """Get job info by ID"""
        with self._lock:
            return self._jobs.get(job_id)

    def update_progress(self, job_id: str, progress: int, message: str):
        """Update job progress (0-100) and message"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job and job.status == JobStatus.PROCESSING:
                job.progress = min(100, max(0, progress))
                job.progress_message = message

    def cancel_job(self, job_id: str) -> bool:
        """
        Request cancellation.

        Pending jobs are cancelled at once; running jobs stop before their
        next image and are marked cancelled by the worker.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if not job or job.is_finished:
                return False
            job.cancel_event.set()
            if job.status == JobStatus.PENDING:
                job.status = JobStatus.CANCELLED
                job.progress_message = "Cancelled"
                job.completed_at = time.time()
                job.images = []
            return True

    def complete_job(self, job_id: str, pdf_bytes: bytes):
        """Mark a job as completed with its PDF"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job:
                job.status = JobStatus.COMPLETED
                job.progress = 100
                job.progress_message = "Complete!"
                job.completed_at = time.time()
                job.result_pdf = pdf_bytes
                job.images = []

    def fail_job(self, job_id: str, exc: BaseException):
        """Mark a job as failed (or cancelled) from the exception that stopped it"""
        classification = ErrorClassifier.classify(exc)
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return
            job.status = JobStatus.CANCELLED if isinstance(exc, PipelineCancelled) else JobStatus.FAILED
            job.progress_message = classification.user_message
            job.error_type = classification.error_type.value
            job.error_message = classification.user_message
            job.error_index = classification.index
            job.completed_at = time.time()
            job.images = []

    def cleanup_old_jobs(self) -> int:
        """Drop finished jobs older than the retention period. Returns how many."""
        cutoff = time.time() - self._cleanup_after_seconds

        with self._lock:
            stale_ids = [
                jid for jid, job in self._jobs.items()
                if job.is_finished and job.created_at < cutoff
            ]
            for jid in stale_ids:
                del self._jobs[jid]

        if stale_ids:
            logger.info(f"[JOB CLEANUP] Removed {len(stale_ids)} old jobs")
        return len(stale_ids)

    def _start_processing(self, job_id: str):
        """Start processing a job in a background thread"""
        thread = Thread(target=self._process_job, args=(job_id,), daemon=True)
        thread.start()

    def _process_job(self, job_id: str):
        """Process a job (runs in background thread)"""
        job = self.get_job(job_id)
        if not job:
            return

        # Wait for a slot if at capacity
        while True:
            with self._lock:
                if job.status == JobStatus.CANCELLED:
                    return
                if self._processing_count < self._max_concurrent:
                    self._processing_count += 1
                    job.status = JobStatus.PROCESSING
                    job.started_at = time.time()
                    job.progress = 5
                    job.progress_message = "Starting processing..."
                    break
            time.sleep(0.1)

        try:
            self._processor_func(self, job_id)
        except Exception as e:
            logger.warning(f"[JOB ERROR] {job_id}: {e}")
            self.fail_job(job_id, e)
        finally:
            with self._lock:
                self._processing_count -= 1

    def get_stats(self) -> dict:
        """Get queue statistics"""
        with self._lock:
            by_status = {}
            for job in self._jobs.values():
                by_status[job.status.value] = by_status.get(job.status.value, 0) + 1
            return {
                "total_jobs": len(self._jobs),
                "processing": self._processing_count,
                "by_status": by_status,
            }


def run_generation_job(queue: JobQueue, job_id: str):
    """Default processor: build the PDF for a job and store it."""
    job = queue.get_job(job_id)
    if not job:
        return

    def on_progress(done: int, total: int):
        # 5% at start, 95% once every image is processed, 100% after emission
        queue.update_progress(job_id, 5 + int(90 * done / total), f"Processed page {done} of {total}")

    pdf_bytes = generate_document(
        job.images,
        job.quality,
        job.mode,
        job.annotation,
        cancel_event=job.cancel_event,
        progress=on_progress,
    )
    queue.complete_job(job_id, pdf_bytes)


# Global job queue instance
job_queue = JobQueue(
    max_concurrent=settings.max_concurrent_jobs,
    cleanup_after_minutes=settings.job_retention_minutes,
)
