import base64

import pytest

from conftest import make_business
from errors import IngestionError, PreflightError, QuotaExceededError
from schemas import PhotoRecord
from sources.base import PhotoBundle
from sources.cached import CachedUrlPhotoSource, InlinePhotoSource, decode_data_uri
from sources.factory import build_photo_source
from sources.google import GooglePlacesPhotoSource
from sources.hybrid import STOCK_IMAGES, FallbackPhotoSource, StockPhotoSource, stock_images_for


class FakePlaces:
    def __init__(self, references=None, found=None, fail=()):
        self.references = references or {}
        self.found = found
        self.fail = set(fail)
        self.lookups = []

    def photo_references(self, place_id):
        self.lookups.append(place_id)
        return self.references.get(place_id, [])

    def find_place(self, query):
        self.lookups.append(query)
        return self.found

    def get_photo(self, reference, max_width=800):
        if reference in self.fail:
            raise ConnectionError(f"{reference} timed out")
        return reference.encode()


def test_google_prefers_stored_references():
    places = FakePlaces()
    source = GooglePlacesPhotoSource(places, photos_per_business=2)

    bundle = source.fetch(make_business("p1", photo_references=["a", "b", "c", "d"]))

    assert bundle.logo == b"a"
    assert bundle.photos == [b"b", b"c"]
    assert places.lookups == []


def test_google_falls_back_to_find_place_by_name():
    places = FakePlaces(references={"ChIJ9": ["x"]}, found="ChIJ9")
    source = GooglePlacesPhotoSource(places)

    bundle = source.fetch(make_business("sample1", "Dubai Visa Solutions"))

    assert bundle.logo == b"x"
    assert places.lookups == ["Dubai Visa Solutions Dubai", "ChIJ9"]


def test_google_without_photos_fails():
    with pytest.raises(IngestionError, match="No photos found"):
        GooglePlacesPhotoSource(FakePlaces()).fetch(make_business("p1"))


def test_google_logo_failure_fails_but_photo_failure_is_skipped():
    source = GooglePlacesPhotoSource(FakePlaces(fail={"b"}))

    bundle = source.fetch(make_business("p1", photo_references=["a", "b", "c"]))
    assert bundle.photos == [b"c"]

    with pytest.raises(IngestionError):
        GooglePlacesPhotoSource(FakePlaces(fail={"a"})).fetch(make_business("p1", photo_references=["a", "b"]))


def test_cached_source_downloads_http_urls_only():
    fetched = []

    def downloader(url):
        fetched.append(url)
        return url.encode()

    business = make_business(
        "p1",
        logo_url="https://old-host/logo.jpg",
        photos=[
            PhotoRecord(id="1", url="https://old-host/1.jpg"),
            PhotoRecord(id="2", url="/api/proxy/2"),
        ],
    )

    bundle = CachedUrlPhotoSource(downloader=downloader).fetch(business)

    assert bundle.logo == b"https://old-host/logo.jpg"
    assert bundle.photos == [b"https://old-host/1.jpg"]
    assert fetched == ["https://old-host/logo.jpg", "https://old-host/1.jpg"]


def test_cached_source_with_nothing_to_fetch():
    with pytest.raises(IngestionError):
        CachedUrlPhotoSource(downloader=lambda url: b"").fetch(make_business("p1"))


def test_inline_source_decodes_data_uris():
    logo = "data:image/png;base64," + base64.b64encode(b"logo-bytes").decode()
    photo = base64.b64encode(b"photo-bytes").decode()

    bundle = InlinePhotoSource().fetch(make_business("p1", logo_url=logo, photos=[PhotoRecord(id="1", base64=photo)]))

    assert bundle.logo == b"logo-bytes"
    assert bundle.photos == [b"photo-bytes"]
    with pytest.raises(IngestionError):
        decode_data_uri("data:image/png;base64,@@@")


def test_stock_images_follow_category():
    assert stock_images_for(make_business("1", "X", category="Document Attestation")) == STOCK_IMAGES["attestation"]
    assert stock_images_for(make_business("2", "Golden Visa Center")) == STOCK_IMAGES["visa"]
    assert stock_images_for(make_business("3", "Something Else")) == STOCK_IMAGES["default"]

    bundle = StockPhotoSource(downloader=lambda url: b"img").fetch(make_business("3", "Something Else"))
    assert bundle.logo == b"img"
    assert len(bundle.photos) == len(STOCK_IMAGES["default"]) - 1


def test_fallback_uses_next_source_after_quota_error():
    class QuotaSource(StockPhotoSource):
        name = "google"

        def fetch(self, business):
            raise QuotaExceededError("over limit", status="OVER_QUERY_LIMIT")

    class StaticSource(StockPhotoSource):
        name = "stock"

        def fetch(self, business):
            return PhotoBundle(logo=b"stock", method=self.name)

    bundle = FallbackPhotoSource([QuotaSource(), StaticSource()]).fetch(make_business("p1"))
    assert bundle.method == "stock"

    with pytest.raises(IngestionError, match="google: over limit"):
        FallbackPhotoSource([QuotaSource()]).fetch(make_business("p1"))


def test_factory_selects_strategy():
    assert isinstance(build_photo_source("cached", api_key=""), CachedUrlPhotoSource)
    assert isinstance(build_photo_source("base64", api_key=""), InlinePhotoSource)
    assert isinstance(build_photo_source("google", api_key="k"), GooglePlacesPhotoSource)

    hybrid = build_photo_source("hybrid", api_key="k")
    assert isinstance(hybrid, FallbackPhotoSource)
    assert [s.name for s in hybrid.sources] == ["google", "stock"]


def test_factory_preflight_errors():
    with pytest.raises(PreflightError, match="API key"):
        build_photo_source("google", api_key="")
    with pytest.raises(PreflightError, match="Unknown strategy"):
        build_photo_source("netlify", api_key="k")


def test_key_requirement_follows_the_sources():
    assert not build_photo_source("cached", api_key="").requires_api_key
    assert build_photo_source("google", api_key="k").requires_api_key
    assert FallbackPhotoSource([StockPhotoSource()]).requires_api_key is False

    with pytest.raises(PreflightError, match="API key"):
        build_photo_source("hybrid", api_key="")
