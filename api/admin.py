"""Admin routes: directory sync, image ingestion jobs, progress stream and FTP connection check."""
import asyncio
import queue
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from loguru import logger
from sqlalchemy.orm import Session

from api.businesses import default_places_client
from config import settings
from database import get_db
from directory import listing_stats
from errors import UploadError
from jobs import JobRunner
from progress import ProgressTracker, connected_frame, format_sse
from repository import BusinessRepository, business_to_record
from schemas import AutoProcessRequest, BatchUploadRequest, ImportRequest, SyncRequest
from sync import BusinessSync
from utils.hostinger import HostingerUploader
from utils.places_client import GooglePlacesClient

KEEPALIVE = ": keepalive\n\n"


def create_admin_router(
    *,
    runner: JobRunner,
    tracker: ProgressTracker,
    uploader_factory: Callable[[], HostingerUploader] = HostingerUploader,
    places_factory: Callable[[], Optional[GooglePlacesClient]] = default_places_client,
    poll_interval: float = 0.25,
    keepalive_interval: float = 30.0,
) -> APIRouter:
    router = APIRouter(prefix="/api/admin")

    @router.post("/super-fast-batch-upload")
    def super_fast_batch_upload(body: BatchUploadRequest):
        concurrency = body.concurrency or settings.default_concurrency
        job = runner.submit("batch", body.strategy, body.batch_number, concurrency)
        return {"success": True, "jobId": job["id"], "state": job["state"], "results": job["results"]}

    @router.post("/auto-process-all")
    def auto_process_all(body: AutoProcessRequest):
        concurrency = body.concurrency or settings.default_concurrency
        job = runner.submit("all", body.strategy, 1, concurrency, background=True)
        return {
            "success": True,
            "jobId": job["id"],
            "state": job["state"],
            "message": "Started automatic processing of all batches",
        }

    @router.get("/jobs/{job_id}")
    def get_job(job_id: str):
        return runner.get(job_id)

    @router.post("/jobs/{job_id}/cancel")
    def cancel_job(job_id: str):
        state = runner.cancel(job_id)
        return {"success": True, "jobId": job_id, "state": state}

    @router.get("/progress-stream")
    async def progress_stream(request: Request, follow: bool = True):
        subscriber = tracker.subscribe()
        logger.debug(f"Progress stream client connected ({tracker.subscriber_count} listening)")

        async def events():
            try:
                yield format_sse(connected_frame())
                current = tracker.snapshot()
                if current:
                    yield format_sse(current)
                if not follow:
                    return

                idle = 0.0
                while not await request.is_disconnected():
                    try:
                        frame = subscriber.get_nowait()
                    except queue.Empty:
                        await asyncio.sleep(poll_interval)
                        idle += poll_interval
                        if idle >= keepalive_interval:
                            idle = 0.0
                            yield KEEPALIVE
                        continue
                    idle = 0.0
                    yield format_sse(frame)
            finally:
                tracker.unsubscribe(subscriber)
                logger.debug("Progress stream client disconnected")

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @router.post("/sync")
    def sync_from_places(body: Optional[SyncRequest] = None, db: Session = Depends(get_db)):
        queries = body.queries if body else None
        summary = BusinessSync(BusinessRepository(db), places_factory()).sync_from_places(queries)
        return {"success": not summary["errors"], "results": summary}

    @router.post("/import")
    def import_businesses(body: ImportRequest, db: Session = Depends(get_db)):
        summary = BusinessSync(BusinessRepository(db)).import_records(body.businesses)
        return {"success": True, "results": summary}

    @router.get("/stats")
    def database_stats(db: Session = Depends(get_db)):
        businesses = [business_to_record(b) for b in BusinessRepository(db).list_businesses(limit=None)]
        return listing_stats(businesses)

    @router.get("/test-hostinger")
    def test_hostinger():
        try:
            result = uploader_factory().test_connection()
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"FTP connection failed: {e}") from e
        return {"success": True, **result}

    return router
