"""Google Places photo source."""
from typing import List, Optional
from loguru import logger

from errors import IngestionError, QuotaExceededError
from schemas import BusinessRecord
from sources.base import PhotoBundle, PhotoSource
from utils.places_client import GooglePlacesClient


class GooglePlacesPhotoSource(PhotoSource):
    """Fetch a logo and photos for a business from the Places Photo API."""

    name = "google"
    requires_api_key = True

    def __init__(self, client: GooglePlacesClient, photos_per_business: int = 5, location_hint: str = "Dubai"):
        super().__init__(photos_per_business)
        self.client = client
        self.location_hint = location_hint

    def resolve_references(self, business: BusinessRecord) -> List[str]:
        """
        Find photo references for a business.

        Stored references are used first, then Place Details for the
        business id, then a Find Place lookup by name.
        """
        if business.photo_references:
            return list(business.photo_references)

        references: List[str] = []
        if business.id and not business.id.startswith("sample"):
            references = self.client.photo_references(business.id)
        if references:
            return references

        place_id: Optional[str] = self.client.find_place(f"{business.name} {self.location_hint}".strip())
        if place_id and place_id != business.id:
            logger.debug(f"Resolved {business.name} to place {place_id}")
            references = self.client.photo_references(place_id)
        return references

    def fetch(self, business: BusinessRecord) -> PhotoBundle:
        references = self.resolve_references(business)
        if not references:
            raise IngestionError("No photos found")

        wanted = references[:1 + self.photos_per_business]
        images: List[bytes] = []
        for index, reference in enumerate(wanted):
            try:
                images.append(self.client.get_photo(reference))
            except QuotaExceededError:
                raise
            except Exception as e:
                # The logo is required; extra photos are best effort.
                if index == 0:
                    raise IngestionError(f"Logo download failed: {e}") from e
                logger.warning(f"Photo {index} for {business.name} failed: {e}")

        return self.bundle_from(images)
