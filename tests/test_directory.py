import pytest

from directory import (
    categories_of,
    filter_businesses,
    listing_stats,
    matches_search,
    sort_businesses,
    to_business_records,
    to_review_records,
)
from sample_data import SAMPLE_BUSINESSES, get_fallback_reviews
from schemas import BusinessRecord


@pytest.fixture
def samples():
    return to_business_records(SAMPLE_BUSINESSES)


def test_search_visa_matches_name_or_category(samples):
    found = filter_businesses(samples, search="visa")

    assert {b.id for b in found} == {"sample1", "sample4", "sample6"}


def test_search_is_case_insensitive_and_covers_address(samples):
    assert [b.id for b in filter_businesses(samples, search="VISA")] == [b.id for b in filter_businesses(samples, search="visa")]
    deira = BusinessRecord(id="x", name="Alpha", address="Deira, Dubai")
    assert matches_search(deira, "deira")
    assert matches_search(deira, "   ")


def test_relevance_sort_puts_keyword_matches_first(samples):
    ordered = sort_businesses(samples, "relevance")

    flags = [b.has_target_keyword for b in ordered]
    assert flags == sorted(flags, reverse=True)
    keyword_ratings = [b.rating for b in ordered if b.has_target_keyword]
    assert keyword_ratings == sorted(keyword_ratings, reverse=True)


def test_filtering_keeps_active_sort_order(samples):
    for sort in ("relevance", "rating", "reviews", "name"):
        full = [b.id for b in sort_businesses(samples, sort)]
        filtered = [b.id for b in filter_businesses(samples, search="visa", sort=sort)]
        assert filtered == [i for i in full if i in filtered]


def test_name_and_reviews_sorts():
    records = [
        BusinessRecord(id="1", name="beta", review_count=5),
        BusinessRecord(id="2", name="Alpha", review_count=50),
    ]
    assert [b.id for b in sort_businesses(records, "name")] == ["2", "1"]
    assert [b.id for b in sort_businesses(records, "reviews")] == ["2", "1"]


def test_unknown_sort_rejected(samples):
    with pytest.raises(ValueError):
        sort_businesses(samples, "distance")


def test_category_filter(samples):
    found = filter_businesses(samples, category="Visa Services")
    assert {b.id for b in found} == {"sample1", "sample4"}
    assert len(filter_businesses(samples, category="all")) == len(samples)


def test_malformed_records_are_skipped():
    records = to_business_records([
        {"id": "ok", "name": "Fine"},
        {"name": "No id"},
        {"id": "bad", "name": "Bad rating", "rating": 9},
    ])
    assert [r.id for r in records] == ["ok"]


def test_camel_case_payload_is_parsed():
    record = to_business_records([{"id": "a", "name": "A", "reviewCount": 12, "logoUrl": "http://x/logo.jpg"}])[0]
    assert record.review_count == 12
    assert record.logo_url == "http://x/logo.jpg"
    assert record.to_dict()["reviewCount"] == 12


def test_fallback_reviews_parse():
    reviews = to_review_records(get_fallback_reviews("sample1"))
    assert len(reviews) == 2
    assert all(1 <= r.rating <= 5 for r in reviews)
    assert get_fallback_reviews("unknown") == []


def test_categories_and_stats(samples):
    assert "Visa Services" in categories_of(samples)
    stats = listing_stats(samples)
    assert stats["total"] == len(samples)
    assert stats["topRated"] == sum(1 for b in samples if b.rating >= 4.5)
