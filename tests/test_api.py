import json

import pytest
from fastapi.testclient import TestClient

from api.app_factory import create_app
from conftest import FakePhotoSource, FakeUploader, make_business
from database import get_db
from errors import PreflightError
from jobs import JobRunner, JobStore
from schemas import PhotoRecord, ReviewRecord


def source_factory(strategy):
    if strategy == "google":
        raise PreflightError("Google Places API key not configured")
    return FakePhotoSource(photos=2)


class FakePlaces:
    def text_search(self, query):
        return [
            {"place_id": "g1", "name": "Gulf Visa Centre", "rating": 4.4, "photos": [{"photo_reference": "r1"}]},
            {"place_id": "g2", "name": "Marina Typing", "business_status": "OPERATIONAL"},
        ]

    def reviews(self, place_id):
        return [
            {"author_name": "Omar", "rating": 5, "text": "Fast visa renewal", "relative_time_description": "a week ago"},
            {"author_name": "Omar", "rating": 5, "text": "Fast visa renewal", "relative_time_description": "a week ago"},
        ]


@pytest.fixture
def static_export(tmp_path):
    path = tmp_path / "businesses.json"
    path.write_text(json.dumps({"businesses": [
        {"id": "s1", "name": "Static Visa Bureau", "category": "Visa Services", "rating": 4.1},
        {"id": "s2", "name": "Static Typing Centre", "category": "Typing", "rating": 4.9},
    ]}))
    return str(path)


@pytest.fixture
def runner(session_factory, tracker):
    return JobRunner(session_factory, tracker, source_factory=source_factory, uploader_factory=FakeUploader)


@pytest.fixture
def client(session_factory, runner, static_export, tmp_path, monkeypatch):
    monkeypatch.setattr("config.settings.uploads_dir", str(tmp_path / "uploads"))
    app = create_app(
        runner=runner,
        uploader_factory=FakeUploader,
        places_factory=FakePlaces,
        static_data_path=static_export,
    )

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_listing_from_database(client, add_businesses):
    add_businesses(
        make_business("a", "Alpha Visa", rating=4.0, has_target_keyword=True),
        make_business("b", "Beta PRO", rating=4.9),
        make_business("c", "Gamma Visa", rating=4.5, has_target_keyword=True),
    )

    body = client.get("/api/dubai-visa-services", params={"limit": 2}).json()

    assert body["source"] == "database"
    assert body["total"] == 3
    assert [b["id"] for b in body["businesses"]] == ["c", "a"]
    assert "reviewCount" in body["businesses"][0]


def test_listing_search_and_sort(client, add_businesses):
    add_businesses(
        make_business("a", "Alpha Visa", rating=4.0),
        make_business("b", "Beta PRO", rating=4.9),
        make_business("c", "Gamma Visa", rating=4.5),
    )

    body = client.get("/api/businesses", params={"search": "visa", "sort": "name"}).json()

    assert [b["id"] for b in body["businesses"]] == ["a", "c"]
    assert client.get("/api/businesses", params={"sort": "distance"}).status_code == 400


def test_search_with_no_database_matches_stays_on_database(client, add_businesses):
    add_businesses(
        make_business("a", "Alpha Visa", rating=4.0),
        make_business("b", "Beta PRO", rating=4.9),
    )

    body = client.get("/api/dubai-visa-services", params={"search": "typing"}).json()

    assert body["source"] == "database"
    assert body["message"] is None
    assert body["businesses"] == []
    assert body["total"] == 0

    body = client.get("/api/dubai-visa-services", params={"category": "Typing"}).json()
    assert body["source"] == "database"
    assert body["businesses"] == []


def test_listing_falls_back_to_static_export(client):
    body = client.get("/api/dubai-visa-services").json()

    assert body["source"] == "static"
    assert body["message"] == "Showing cached data"
    assert [b["id"] for b in body["businesses"]] == ["s2", "s1"]


def test_business_detail(client, add_businesses):
    add_businesses(make_business("a", "Alpha Visa"))

    assert client.get("/api/business-db/a").json()["business"]["name"] == "Alpha Visa"
    assert client.get("/api/business-db/s1").json()["source"] == "static"
    response = client.get("/api/business-db/missing")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_business_photos(client, add_businesses):
    add_businesses(
        make_business("a", "With Photos", photos=[PhotoRecord(id="p", s3_url="https://cdn/p.jpg", source="s3")]),
        make_business("b", "No Photos"),
    )

    with_photos = client.get("/api/business-photos/a").json()
    assert with_photos["source"] == "database"
    assert with_photos["photos"][0]["s3Url"] == "https://cdn/p.jpg"

    placeholder = client.get("/api/business-photos/b").json()
    assert placeholder["source"] == "default"
    assert placeholder["photos"][0]["source"] == "default"


def test_reviews_from_database_then_places(client, add_businesses, repo):
    add_businesses(make_business("stored", "Stored"), make_business("fresh", "Fresh"))
    repo.save_reviews("stored", [ReviewRecord(id="r1", author_name="Ahmed", rating=4, text="Good")])
    repo.commit()

    stored = client.get("/api/business-reviews/stored").json()
    assert stored["source"] == "database"
    assert stored["count"] == 1

    fresh = client.get("/api/business-reviews/fresh").json()
    assert fresh["source"] == "google_api"
    assert fresh["count"] == 1
    assert fresh["reviews"][0]["authorName"] == "Omar"

    cached = client.get("/api/business-reviews/fresh").json()
    assert cached["source"] == "database"

    assert client.get("/api/business-reviews/missing").status_code == 404


def test_categories(client, add_businesses):
    assert client.get("/api/categories").json()["categories"] == ["Typing", "Visa Services"]

    add_businesses(make_business("a", "Alpha", category="PRO Services"))
    assert client.get("/api/categories").json() == {"categories": ["PRO Services"], "source": "database"}


def test_report_submission_and_moderation(client, tmp_path):
    response = client.post(
        "/api/reports/submit",
        data={
            "companyId": "a",
            "companyName": "Alpha Visa",
            "issueType": "fraud",
            "description": "Took the fee and disappeared",
            "amountLost": "1500",
            "reporterEmail": "victim@example.com",
        },
        files={"paymentReceipt": ("receipt.PDF", b"%PDF-1.4", "application/pdf")},
    )
    assert response.status_code == 200
    body = response.json()
    report_id = body["reportId"]
    assert report_id.startswith("report_")
    assert body["filesUploaded"] == {"paymentReceipt": True, "agreementCopy": False}
    assert (tmp_path / "uploads" / "receipts" / f"{report_id}_receipt.pdf").read_bytes() == b"%PDF-1.4"

    assert client.get("/api/reports/company/a").json() == {"reports": [], "total": 0}
    pending = client.get("/api/reports/all").json()
    assert pending["total"] == 1
    assert pending["reports"][0]["reporterEmail"] == "victim@example.com"

    assert client.put(f"/api/reports/{report_id}/status", json={"status": "bogus"}).status_code == 400
    approved = client.put(f"/api/reports/{report_id}/status", json={"status": "approved", "adminNotes": "verified"})
    assert approved.json()["success"] is True

    public = client.get("/api/reports/company/a").json()
    assert public["total"] == 1
    assert public["reports"][0]["amountLost"] == 1500.0
    assert "reporterEmail" not in public["reports"][0]
    assert client.put("/api/reports/nope/status", json={"status": "approved"}).status_code == 404


def test_report_requires_core_fields(client):
    response = client.post("/api/reports/submit", data={"companyId": "a", "companyName": "Alpha"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: issueType, description"


def test_super_fast_batch_upload(client, add_businesses):
    add_businesses(make_business("a", "Alpha"), make_business("b", "Beta"))

    response = client.post("/api/admin/super-fast-batch-upload", json={"batchNumber": 1, "concurrency": 2, "strategy": "fake"})

    body = response.json()
    assert body["success"] is True
    assert body["state"] == "completed"
    assert body["results"]["processed"] == 2
    assert body["results"]["totalLogos"] == 2
    assert body["results"]["totalPhotos"] == 4

    job = client.get(f"/api/admin/jobs/{body['jobId']}").json()
    assert job["state"] == "completed"


def test_batch_upload_preflight_error(client):
    response = client.post("/api/admin/super-fast-batch-upload", json={"batchNumber": 1, "strategy": "google"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Google Places API key not configured"}


def test_batch_upload_rejects_bad_batch_number(client):
    assert client.post("/api/admin/super-fast-batch-upload", json={"batchNumber": 0}).status_code == 422


def test_job_lookup_and_cancel(client, db):
    job = JobStore(db).create("batch", "fake", 1, 1)

    assert client.post(f"/api/admin/jobs/{job.id}/cancel").json()["state"] == "cancelled"
    assert client.get("/api/admin/jobs/unknown").status_code == 404


def test_progress_stream_snapshot(client, tracker):
    tracker.start_batch(4, 50, job_id="j1")

    response = client.get("/api/admin/progress-stream", params={"follow": "false"})

    assert response.headers["content-type"].startswith("text/event-stream")
    frames = [json.loads(line[len("data: "):]) for line in response.text.split("\n\n") if line.startswith("data: ")]
    assert frames[0]["type"] == "connected"
    assert frames[1]["batchNumber"] == 4
    assert frames[1]["status"] == "processing"
    assert tracker.subscriber_count == 0


def test_hostinger_connection_check(client):
    body = client.get("/api/admin/test-hostinger").json()
    assert body["success"] is True
    assert body["host"] == "ftp.example.com"


def test_sync_from_places_populates_listing(client, repo):
    response = client.post("/api/admin/sync", json={"queries": ["visa services Dubai"]})

    body = response.json()
    assert body["success"] is True
    assert body["results"]["created"] == 2

    listing = client.get("/api/dubai-visa-services").json()
    assert listing["source"] == "database"
    assert [b["id"] for b in listing["businesses"]] == ["g1", "g2"]
    assert repo.get_business("g1").photo_reference_list == ["r1"]


def test_import_and_stats(client):
    response = client.post("/api/admin/import", json={"businesses": [
        {"id": "i1", "name": "Imported Visa", "rating": 4.7, "logoUrl": "https://cdn.example.com/logo.jpg"},
        {"id": "i2", "name": "Imported Typing", "rating": 3.9},
        {"name": "No id"},
    ]})

    assert response.json()["results"] == {"created": 2, "updated": 0, "skipped": 1}
    assert client.get("/api/admin/stats").json() == {"total": 2, "hasLogos": 1, "hasPhotos": 0, "topRated": 1}
