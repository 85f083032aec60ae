"""Persistent ingestion jobs and the runner that executes them."""
import json
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from loguru import logger
from sqlalchemy.orm import Session

from database import SessionLocal
from errors import JobConflictError, NotFoundError
from models import IngestionJob
from pipeline import BatchSummary, CancellationToken, IngestionPipeline
from progress import ProgressTracker, tracker as default_tracker
from repository import BusinessRepository
from sources.base import PhotoSource
from sources.factory import build_photo_source
from utils.hostinger import HostingerUploader

JOB_STATES = ("queued", "running", "completed", "failed", "cancelled")
ACTIVE_STATES = ("queued", "running")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def job_to_dict(job: IngestionJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "kind": job.kind,
        "strategy": job.strategy,
        "batchNumber": job.batch_number,
        "concurrency": job.concurrency,
        "state": job.state,
        "processed": job.processed or 0,
        "successful": job.successful or 0,
        "failed": job.failed or 0,
        "totalLogos": job.total_logos or 0,
        "totalPhotos": job.total_photos or 0,
        "errors": job.error_list,
        "hasMore": bool(job.has_more),
        "detail": job.detail,
        "createdAt": job.created_at.isoformat() if job.created_at else None,
        "finishedAt": job.finished_at.isoformat() if job.finished_at else None,
    }


class JobStore:
    """CRUD for ingestion job rows."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, kind: str, strategy: str, batch_number: int, concurrency: int) -> IngestionJob:
        job = IngestionJob(
            id=uuid.uuid4().hex,
            kind=kind,
            strategy=strategy,
            batch_number=batch_number,
            concurrency=concurrency,
            state="queued",
            errors="[]",
        )
        self.db.add(job)
        self.db.commit()
        logger.info(f"Created {kind} job {job.id} (strategy={strategy}, batch={batch_number})")
        return job

    def get(self, job_id: str) -> Optional[IngestionJob]:
        return self.db.get(IngestionJob, job_id)

    def require(self, job_id: str) -> IngestionJob:
        job = self.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def mark(self, job_id: str, state: str, detail: Optional[str] = None) -> IngestionJob:
        if state not in JOB_STATES:
            raise ValueError(f"Unknown job state: {state}")
        job = self.require(job_id)
        job.state = state
        if detail is not None:
            job.detail = detail
        if state not in ACTIVE_STATES:
            job.finished_at = _now()
        self.db.commit()
        return job

    def record(self, job_id: str, summary: BatchSummary) -> IngestionJob:
        """Copy a summary's counters onto the job row."""
        job = self.require(job_id)
        job.batch_number = summary.batch_number
        job.processed = summary.processed
        job.successful = summary.successful
        job.failed = summary.failed
        job.total_logos = summary.total_logos
        job.total_photos = summary.total_photos
        job.errors = json.dumps(summary.errors)
        job.has_more = summary.has_more
        self.db.commit()
        return job

    def recover_interrupted(self) -> int:
        """Fail jobs a previous process left queued or running."""
        jobs = self.db.query(IngestionJob).filter(IngestionJob.state.in_(ACTIVE_STATES)).all()
        for job in jobs:
            job.state = "failed"
            job.detail = "interrupted by restart"
            job.finished_at = _now()
        if jobs:
            self.db.commit()
            logger.warning(f"Marked {len(jobs)} interrupted ingestion job(s) as failed")
        return len(jobs)


class JobRunner:
    """
    Run ingestion jobs inline or on a background thread.

    One job runs at a time. Cancellation tokens for running jobs live in
    this process; the job rows themselves live in the database.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        tracker: Optional[ProgressTracker] = None,
        source_factory: Callable[[str], PhotoSource] = build_photo_source,
        uploader_factory: Callable[[], HostingerUploader] = HostingerUploader,
    ):
        self.session_factory = session_factory
        self.tracker = tracker or default_tracker
        self.source_factory = source_factory
        self.uploader_factory = uploader_factory
        self._tokens: Dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    @property
    def active_job_ids(self):
        with self._lock:
            return list(self._tokens)

    def _register(self, job_id: str) -> CancellationToken:
        with self._lock:
            if self._tokens:
                running = next(iter(self._tokens))
                raise JobConflictError(f"Ingestion job {running} is already running")
            token = CancellationToken()
            self._tokens[job_id] = token
            return token

    def _release(self, job_id: str):
        with self._lock:
            self._tokens.pop(job_id, None)

    def _create(self, kind: str, strategy: str, batch_number: int, concurrency: int) -> str:
        db = self.session_factory()
        try:
            return JobStore(db).create(kind, strategy, batch_number, concurrency).id
        finally:
            db.close()

    def submit(
        self,
        kind: str,
        strategy: str = "google",
        batch_number: int = 1,
        concurrency: int = 5,
        background: bool = False,
    ) -> Dict[str, Any]:
        """
        Create a job and run it.

        Args:
            kind: 'batch' for one batch, 'all' for every batch from batch_number on
            strategy: Photo source strategy
            batch_number: First (or only) batch
            concurrency: Businesses processed in parallel
            background: Return immediately and run on a daemon thread

        Returns:
            Job record dict; for inline runs it also carries 'results'

        Raises:
            PreflightError: Unknown strategy or missing API key
            JobConflictError: Another job is running
        """
        source = self.source_factory(strategy)
        uploader = self.uploader_factory()

        job_id = self._create(kind, strategy, batch_number, concurrency)
        try:
            token = self._register(job_id)
        except JobConflictError as e:
            self._finish(job_id, "failed", str(e))
            raise

        if background:
            thread = threading.Thread(
                target=self._run,
                args=(job_id, kind, source, uploader, batch_number, concurrency, token, True),
                name=f"ingest-{job_id[:8]}",
                daemon=True,
            )
            thread.start()
            return self.get(job_id)

        summary = self._run(job_id, kind, source, uploader, batch_number, concurrency, token)
        job = self.get(job_id)
        job["results"] = summary.to_dict() if summary else None
        return job

    def _finish(self, job_id: str, state: str, detail: Optional[str] = None):
        db = self.session_factory()
        try:
            JobStore(db).mark(job_id, state, detail)
        finally:
            db.close()

    def _run(
        self,
        job_id: str,
        kind: str,
        source: PhotoSource,
        uploader: HostingerUploader,
        batch_number: int,
        concurrency: int,
        token: CancellationToken,
        background: bool = False,
    ) -> Optional[BatchSummary]:
        db = self.session_factory()
        store = JobStore(db)
        try:
            store.mark(job_id, "running")
            pipeline = IngestionPipeline(BusinessRepository(db), source, uploader, self.tracker)
            if kind == "all":
                summary = pipeline.run_all(concurrency, token, job_id, start_batch=batch_number)
            else:
                summary = pipeline.run_batch(batch_number, concurrency, token, job_id)
            store.record(job_id, summary)
            store.mark(job_id, "cancelled" if summary.cancelled else "completed")
            return summary
        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")
            db.rollback()
            store.mark(job_id, "failed", str(e))
            self.tracker.fail(str(e))
            if not background:
                raise
            return None
        finally:
            self._release(job_id)
            db.close()

    def get(self, job_id: str) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            return job_to_dict(JobStore(db).require(job_id))
        finally:
            db.close()

    def cancel(self, job_id: str) -> str:
        """Request cancellation; returns the job state as stored right now."""
        with self._lock:
            token = self._tokens.get(job_id)
        if token is not None:
            token.cancel()
            logger.info(f"Cancellation requested for job {job_id}")
        job = self.get(job_id)
        if token is None and job["state"] == "queued":
            self._finish(job_id, "cancelled")
            return "cancelled"
        return job["state"]

    def recover(self) -> int:
        db = self.session_factory()
        try:
            return JobStore(db).recover_interrupted()
        finally:
            db.close()


runner = JobRunner()
