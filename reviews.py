"""Business reviews: stored reviews first, then Google Places."""
from typing import Any, Dict, List, Optional, Tuple
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, PlacesApiError, TransportError
from repository import BusinessRepository, review_to_record
from schemas import ReviewRecord
from utils.places_client import GooglePlacesClient

MAX_REVIEWS = 30


def google_review_to_record(business_id: str, index: int, review: Dict[str, Any]) -> ReviewRecord:
    return ReviewRecord(
        id=f"{business_id}-google-{index}",
        author_name=review.get("author_name") or "Anonymous",
        rating=min(max(int(review.get("rating") or 1), 1), 5),
        text=review.get("text") or "",
        time_ago=review.get("relative_time_description"),
        profile_photo_url=review.get("profile_photo_url"),
    )


def dedupe_reviews(reviews: List[ReviewRecord], limit: int = MAX_REVIEWS) -> List[ReviewRecord]:
    """Drop reviews with the same author and text, keeping the first."""
    seen = set()
    unique = []
    for review in reviews:
        key = (review.author_name.strip().lower(), review.text.strip().lower())
        if key in seen:
            continue
        seen.add(key)
        unique.append(review)
        if len(unique) >= limit:
            break
    return unique


class ReviewService:
    """Look up reviews for a business, caching Places results in the database."""

    def __init__(self, repository: BusinessRepository, places: Optional[GooglePlacesClient] = None):
        self.repository = repository
        self.places = places

    def get_reviews(self, business_id: str) -> Tuple[List[ReviewRecord], str]:
        """
        Reviews for a business and where they came from.

        Returns:
            (reviews, source) where source is 'database', 'google_api' or 'none'

        Raises:
            NotFoundError: Unknown business
        """
        stored = self.repository.get_reviews(business_id)
        if stored:
            logger.debug(f"Found {len(stored)} stored reviews for {business_id}")
            return dedupe_reviews([review_to_record(r) for r in stored]), "database"

        business = self.repository.get_business(business_id)
        if business is None:
            raise NotFoundError(f"Business {business_id} not found")

        if self.places is None:
            return [], "none"

        try:
            raw = self.places.reviews(business_id)
        except (PlacesApiError, TransportError) as e:
            logger.warning(f"Google reviews unavailable for {business.name}: {e}")
            return [], "none"

        records = []
        for index, item in enumerate(raw):
            try:
                records.append(google_review_to_record(business_id, index, item))
            except (PydanticValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed Google review for {business.name}: {e}")
        records = dedupe_reviews(records)

        if records:
            self.repository.save_reviews(business_id, records)
            self.repository.commit()
            logger.info(f"Cached {len(records)} Google reviews for {business.name}")
            return records, "google_api"
        return [], "none"
