import time

import pytest

from conftest import FakePhotoSource, FakeUploader, make_business
from errors import JobConflictError, NotFoundError, PreflightError
from jobs import JobRunner, JobStore
from models import IngestionJob
from pipeline import BatchSummary


def strict_factory(strategy):
    if strategy != "fake":
        raise PreflightError(f"Unknown strategy '{strategy}'")
    return FakePhotoSource(photos=1)


@pytest.fixture
def runner(session_factory, tracker):
    return JobRunner(session_factory, tracker, source_factory=strict_factory, uploader_factory=FakeUploader)


def test_store_records_summary(db):
    store = JobStore(db)
    job = store.create("batch", "google", 2, 5)

    summary = BatchSummary(batch_number=2, batch_size=50, processed=3, successful=2, failed=1, total_logos=2, total_photos=7, errors=["x: y"], has_more=True)
    store.record(job.id, summary)
    store.mark(job.id, "completed")

    stored = store.get(job.id)
    assert stored.state == "completed"
    assert stored.error_list == ["x: y"]
    assert stored.total_photos == 7
    assert stored.finished_at is not None


def test_recover_interrupted_jobs(db):
    store = JobStore(db)
    running = store.create("batch", "google", 1, 5)
    store.mark(running.id, "running")
    queued = store.create("all", "hybrid", 1, 5)
    done = store.create("batch", "google", 1, 5)
    store.mark(done.id, "completed")

    assert store.recover_interrupted() == 2

    assert store.get(running.id).state == "failed"
    assert store.get(running.id).detail == "interrupted by restart"
    assert store.get(queued.id).state == "failed"
    assert store.get(done.id).state == "completed"


def test_inline_batch_job_completes(runner, add_businesses):
    add_businesses(make_business("a"), make_business("b"))

    job = runner.submit("batch", "fake", 1, 2)

    assert job["state"] == "completed"
    assert job["results"]["processed"] == 2
    assert job["results"]["totalPhotos"] == 2
    assert runner.get(job["id"])["successful"] == 2
    assert runner.active_job_ids == []


def test_preflight_failure_creates_no_job(runner, db):
    with pytest.raises(PreflightError):
        runner.submit("batch", "google", 1, 5)
    assert db.query(IngestionJob).count() == 0


def test_second_job_is_rejected_while_one_runs(runner):
    runner._register("already-running")

    with pytest.raises(JobConflictError):
        runner.submit("batch", "fake", 1, 1)


def test_background_job_can_be_followed(runner, add_businesses):
    add_businesses(*[make_business(f"id{i}") for i in range(3)])

    job = runner.submit("all", "fake", 1, 1, background=True)

    deadline = time.time() + 10
    while time.time() < deadline and runner.get(job["id"])["state"] in ("queued", "running"):
        time.sleep(0.05)
    final = runner.get(job["id"])
    assert final["state"] == "completed"
    assert final["processed"] == 3


def test_cancel_unknown_job(runner):
    with pytest.raises(NotFoundError):
        runner.cancel("nope")


def test_cancel_queued_job(runner, db):
    job = JobStore(db).create("batch", "fake", 1, 1)

    assert runner.cancel(job.id) == "cancelled"
