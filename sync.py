"""Populate the businesses table from Google Places searches or a JSON export."""
import json
import time
from typing import Any, Callable, Dict, Iterable, List, Optional
from loguru import logger

from config import settings
from directory import to_business_records
from errors import PreflightError, QuotaExceededError, ValidationError
from repository import BusinessRepository
from schemas import BusinessRecord
from utils.places_client import GooglePlacesClient

SEARCH_QUERIES = (
    "visa services Dubai",
    "immigration consultants Dubai",
    "visa agency Dubai",
    "PRO services Dubai",
    "visa consultant Dubai",
    "document attestation Dubai",
    "golden visa Dubai",
    "residence visa Dubai",
    "business setup visa Dubai",
    "Schengen visa Dubai",
)

TARGET_KEYWORDS = ("visa", "immigration", "residency", "residence", "pro service", "attestation")


def has_target_keyword(*texts: Optional[str]) -> bool:
    haystack = " ".join(t for t in texts if t).lower()
    return any(keyword in haystack for keyword in TARGET_KEYWORDS)


def place_to_record(place: Dict[str, Any], category: str) -> Optional[BusinessRecord]:
    """
    Convert a Places text search result into a BusinessRecord.

    Args:
        place: One entry of the text search "results" array
        category: Directory category the search query belongs to

    Returns:
        BusinessRecord, or None for results without an id or name
    """
    place_id = place.get("place_id")
    name = place.get("name")
    if not place_id or not name:
        return None

    location = (place.get("geometry") or {}).get("location") or {}
    return BusinessRecord(
        id=place_id,
        name=name,
        address=place.get("formatted_address") or "",
        category=category,
        rating=min(max(float(place.get("rating") or 0.0), 0.0), 5.0),
        review_count=max(int(place.get("user_ratings_total") or 0), 0),
        business_status=place.get("business_status") or "OPERATIONAL",
        has_target_keyword=has_target_keyword(name, category),
        latitude=location.get("lat"),
        longitude=location.get("lng"),
        photo_references=[p["photo_reference"] for p in place.get("photos") or [] if p.get("photo_reference")],
    )


def query_category(query: str) -> str:
    return query.replace(" Dubai", "").strip()


class BusinessSync:
    """Upserts businesses into the directory from external listings."""

    def __init__(
        self,
        repository: BusinessRepository,
        places: Optional[GooglePlacesClient] = None,
        query_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repository = repository
        self.places = places
        self.query_delay = settings.sync_query_delay if query_delay is None else query_delay
        self.sleep = sleep

    def _upsert(self, records: Iterable[BusinessRecord], summary: Dict[str, Any]):
        unique = {record.id: record for record in records}
        for record in unique.values():
            if self.repository.get_business(record.id) is None:
                summary["created"] += 1
            else:
                summary["updated"] += 1
            self.repository.save_business(record)
        self.repository.commit()

    def sync_from_places(self, queries: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Run a text search per query and upsert every result.

        A failed query is recorded and the next one runs; a quota error
        stops the sync.

        Returns:
            Summary dict with queries, found, created, updated and errors
        """
        if self.places is None:
            raise PreflightError("Google Places API key not configured")

        queries = list(queries or SEARCH_QUERIES)
        summary: Dict[str, Any] = {"queries": 0, "found": 0, "created": 0, "updated": 0, "errors": []}

        for index, query in enumerate(queries):
            if index and self.query_delay:
                self.sleep(self.query_delay)
            summary["queries"] += 1
            logger.info(f"[{index + 1}/{len(queries)}] Searching Places: {query}")
            try:
                results = self.places.text_search(query)
            except QuotaExceededError as e:
                summary["errors"].append(f"{query}: {e}")
                logger.error(f"Stopping sync, Places quota reached: {e}")
                break
            except Exception as e:
                summary["errors"].append(f"{query}: {e}")
                logger.warning(f"Places search failed for {query}: {e}")
                continue

            records = [r for r in (place_to_record(p, query_category(query)) for p in results) if r]
            summary["found"] += len(records)
            self._upsert(records, summary)

        logger.info(
            f"Places sync finished: {summary['found']} found, {summary['created']} created, "
            f"{summary['updated']} updated, {len(summary['errors'])} errors"
        )
        return summary

    def import_records(self, items: Iterable[Any]) -> Dict[str, Any]:
        """Upsert businesses from exported JSON objects, skipping malformed ones."""
        items = list(items)
        records = to_business_records(items)
        for record in records:
            if not record.has_target_keyword:
                record.has_target_keyword = has_target_keyword(record.name, record.category)

        summary: Dict[str, Any] = {"created": 0, "updated": 0, "skipped": len(items) - len(records)}
        self._upsert(records, summary)
        logger.info(f"Imported {len(records)} businesses ({summary['skipped']} skipped)")
        return summary

    def import_file(self, path: str) -> Dict[str, Any]:
        """Import a JSON file holding a list of businesses or {"businesses": [...]}."""
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        if isinstance(payload, dict):
            payload = payload.get("businesses")
        if not isinstance(payload, list):
            raise ValidationError(f"{path} does not contain a list of businesses")
        return self.import_records(payload)
