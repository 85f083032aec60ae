"""Search, filter and sort helpers for directory listings."""
from typing import Any, Dict, Iterable, List, Optional
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from schemas import BusinessRecord, ReviewRecord

SORT_KEYS = ("relevance", "rating", "reviews", "name")


def to_business_records(items: Iterable[Any]) -> List[BusinessRecord]:
    """Parse raw dicts into BusinessRecord objects, skipping malformed ones."""
    records = []
    for item in items:
        if isinstance(item, BusinessRecord):
            records.append(item)
            continue
        try:
            records.append(BusinessRecord.model_validate(item))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed business record {item!r:.80}: {e.error_count()} errors")
    return records


def to_review_records(items: Iterable[Any]) -> List[ReviewRecord]:
    records = []
    for item in items:
        if isinstance(item, ReviewRecord):
            records.append(item)
            continue
        try:
            records.append(ReviewRecord.model_validate(item))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed review {item!r:.80}: {e.error_count()} errors")
    return records


def matches_search(business: BusinessRecord, term: str) -> bool:
    """Case-insensitive substring match on name, address and category."""
    needle = term.strip().lower()
    if not needle:
        return True
    haystacks = (business.name, business.address or "", business.category or "")
    return any(needle in h.lower() for h in haystacks)


def sort_businesses(businesses: List[BusinessRecord], sort: str = "relevance") -> List[BusinessRecord]:
    """
    Sort businesses by the given key.

    'relevance' puts keyword matches first, then rating, then review count,
    all descending. Python's sort is stable, so ties keep their input order.
    """
    if sort not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{sort}', expected one of {', '.join(SORT_KEYS)}")

    if sort == "rating":
        return sorted(businesses, key=lambda b: b.rating, reverse=True)
    if sort == "reviews":
        return sorted(businesses, key=lambda b: b.review_count, reverse=True)
    if sort == "name":
        return sorted(businesses, key=lambda b: b.name.lower())
    return sorted(
        businesses,
        key=lambda b: (b.has_target_keyword, b.rating, b.review_count),
        reverse=True,
    )


def filter_businesses(
    businesses: List[BusinessRecord],
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "relevance",
) -> List[BusinessRecord]:
    """Apply the active sort, then narrow by category and search term."""
    ordered = sort_businesses(businesses, sort)
    if category and category != "all":
        ordered = [b for b in ordered if b.category == category]
    if search:
        ordered = [b for b in ordered if matches_search(b, search)]
    return ordered


def categories_of(businesses: Iterable[BusinessRecord]) -> List[str]:
    return sorted({b.category for b in businesses if b.category})


def listing_stats(businesses: List[BusinessRecord]) -> Dict[str, int]:
    return {
        "total": len(businesses),
        "hasLogos": sum(1 for b in businesses if b.logo_url),
        "hasPhotos": sum(1 for b in businesses if b.photos),
        "topRated": sum(1 for b in businesses if b.rating >= 4.5),
    }
