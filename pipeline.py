"""Batch image ingestion: fetch photos, upload them to the static host, rewrite records."""
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from loguru import logger

from config import settings
from errors import IngestionError, PreflightError, QuotaExceededError, classify_error
from progress import ProgressTracker
from repository import BusinessRepository, business_to_record
from schemas import BusinessRecord
from sources.base import PhotoSource
from utils.hostinger import HostingerUploader


class CancellationToken:
    """Cooperative cancellation flag shared between a job and its canceller."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class BatchSummary:
    batch_number: int
    batch_size: int
    processed: int = 0
    successful: int = 0
    failed: int = 0
    total_logos: int = 0
    total_photos: int = 0
    errors: List[str] = field(default_factory=list)
    has_more: bool = False
    cancelled: bool = False
    batches: int = 1

    def merge(self, other: "BatchSummary"):
        """Fold another batch's counters into this one."""
        self.processed += other.processed
        self.successful += other.successful
        self.failed += other.failed
        self.total_logos += other.total_logos
        self.total_photos += other.total_photos
        self.errors.extend(other.errors)
        self.has_more = other.has_more
        self.cancelled = self.cancelled or other.cancelled
        self.batch_number = other.batch_number

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "totalLogos": self.total_logos,
            "totalPhotos": self.total_photos,
            "errors": list(self.errors),
            "batchNumber": self.batch_number,
            "batchSize": self.batch_size,
            "hasMore": self.has_more,
            "cancelled": self.cancelled,
        }


@dataclass
class _Outcome:
    business: BusinessRecord
    logo_url: Optional[str] = None
    photo_urls: List[str] = field(default_factory=list)
    error: Optional[str] = None


class IngestionPipeline:
    """
    Ingest images for fixed-size slices of the business table.

    The photo source decides where image bytes come from; everything after
    that (upload, record rewrite, error accounting) is shared.
    """

    def __init__(
        self,
        repository: BusinessRepository,
        source: PhotoSource,
        uploader: HostingerUploader,
        tracker: Optional[ProgressTracker] = None,
        batch_size: Optional[int] = None,
        photos_per_business: Optional[int] = None,
    ):
        self.repository = repository
        self.source = source
        self.uploader = uploader
        self.tracker = tracker or ProgressTracker()
        self.batch_size = batch_size or settings.batch_size
        self.photos_per_business = photos_per_business or settings.photos_per_business

    def _process(self, position: int, business: BusinessRecord) -> _Outcome:
        """Fetch and upload images for one business. Runs on a worker thread."""
        outcome = _Outcome(business=business)
        self.tracker.update_business(position, business.name, f"Fetching photos for {business.name}")
        try:
            bundle = self.source.fetch(business)
            if bundle.empty:
                raise IngestionError("No images returned")

            self.tracker.update_business(position, business.name, f"Uploading images for {business.name}")
            if bundle.logo:
                outcome.logo_url = self.uploader.upload_logo(business.id, bundle.logo)
            for index, data in enumerate(bundle.photos[:self.photos_per_business], start=1):
                outcome.photo_urls.append(self.uploader.upload_photo(business.id, index, data))
        except QuotaExceededError as e:
            outcome.error = f"API quota exceeded ({e.status or 'denied'}): {e}"
        except Exception as e:
            outcome.error = str(e) or e.__class__.__name__
            logger.debug(f"{business.name} failed with {classify_error(e)} error")
        return outcome

    def _apply(self, outcome: _Outcome, summary: BatchSummary):
        """Record one outcome. Runs on the coordinating thread."""
        business = outcome.business
        summary.processed += 1

        if outcome.error is None:
            try:
                self.repository.update_images(business.id, outcome.logo_url, outcome.photo_urls)
                self.repository.commit()
            except Exception as e:
                outcome.error = f"Database update failed: {e}"

        if outcome.error is not None:
            summary.failed += 1
            summary.errors.append(f"{business.name}: {outcome.error}")
            self.tracker.add_error(business.name, outcome.error)
            logger.error(f"Failed {business.name}: {outcome.error}")
            return

        summary.successful += 1
        summary.total_logos += 1 if outcome.logo_url else 0
        summary.total_photos += len(outcome.photo_urls)
        self.tracker.add_success(business.name, bool(outcome.logo_url), len(outcome.photo_urls))
        logger.info(f"Processed {business.name}: logo={'yes' if outcome.logo_url else 'no'}, photos={len(outcome.photo_urls)}")

    def run_batch(
        self,
        batch_number: int,
        concurrency: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        job_id: Optional[str] = None,
    ) -> BatchSummary:
        """
        Process one batch of businesses.

        Args:
            batch_number: 1-based batch index
            concurrency: Number of businesses processed in parallel
            token: Checked before each business is dispatched
            job_id: Included in progress frames

        Returns:
            BatchSummary for the batch

        Raises:
            PreflightError: Invalid batch number or concurrency
        """
        if batch_number < 1:
            raise PreflightError("batchNumber must be >= 1")
        concurrency = settings.default_concurrency if concurrency is None else concurrency
        if concurrency < 1:
            raise PreflightError("concurrency must be >= 1")
        concurrency = min(concurrency, settings.max_concurrency)
        token = token or CancellationToken()

        businesses = [business_to_record(b) for b in self.repository.get_batch(batch_number, self.batch_size)]
        total = self.repository.count_all()
        offset = (batch_number - 1) * self.batch_size

        summary = BatchSummary(batch_number=batch_number, batch_size=self.batch_size)
        summary.has_more = offset + len(businesses) < total

        logger.info(f"Batch {batch_number}: {len(businesses)} businesses, concurrency {concurrency}, source {self.source.name}")
        self.tracker.start_batch(batch_number, len(businesses), job_id)

        with ThreadPoolExecutor(max_workers=concurrency) as executor:
            for start in range(0, len(businesses), concurrency):
                futures = []
                for position, business in enumerate(businesses[start:start + concurrency], start=start + 1):
                    if token.cancelled:
                        break
                    futures.append(executor.submit(self._process, position, business))

                for future in futures:
                    self._apply(future.result(), summary)

                if token.cancelled:
                    summary.cancelled = True
                    break

        if summary.cancelled:
            self.tracker.cancel()
            logger.warning(f"Batch {batch_number} cancelled after {summary.processed} businesses")
        else:
            self.tracker.complete(f"Batch {batch_number} complete: {summary.successful}/{summary.processed} successful")
            logger.info(f"Batch {batch_number} complete: {summary.successful}/{summary.processed} successful, {summary.total_logos} logos, {summary.total_photos} photos")
        return summary

    def run_all(
        self,
        concurrency: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        job_id: Optional[str] = None,
        start_batch: int = 1,
    ) -> BatchSummary:
        """Run batches from start_batch until one reports no more businesses."""
        token = token or CancellationToken()
        overall = BatchSummary(batch_number=start_batch, batch_size=self.batch_size, batches=0)

        batch_number = start_batch
        while True:
            summary = self.run_batch(batch_number, concurrency, token, job_id)
            overall.merge(summary)
            overall.batches += 1
            if summary.cancelled or not summary.has_more:
                break
            batch_number += 1

        logger.info(f"All batches done: {overall.successful}/{overall.processed} successful over {overall.batches} batches")
        return overall
