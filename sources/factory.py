"""Select a photo source by strategy name."""
from typing import Optional
import requests

from config import settings
from errors import PreflightError
from sources.base import PhotoSource
from sources.cached import CachedUrlPhotoSource, InlinePhotoSource
from sources.google import GooglePlacesPhotoSource
from sources.hybrid import FallbackPhotoSource, StockPhotoSource
from utils.places_client import GooglePlacesClient

STRATEGIES = ("google", "cached", "base64", "hybrid")


def build_photo_source(
    strategy: str = "google",
    api_key: Optional[str] = None,
    photos_per_business: Optional[int] = None,
    session: Optional[requests.Session] = None,
) -> PhotoSource:
    """
    Build the photo source for an ingestion strategy.

    Args:
        strategy: One of google, cached, base64, hybrid
        api_key: Google Places key; defaults to settings
        photos_per_business: Non-logo photos per business; defaults to settings
        session: Shared requests session

    Returns:
        A ready-to-use PhotoSource

    Raises:
        PreflightError: unknown strategy, or a missing API key for a
            strategy that needs one
    """
    api_key = api_key if api_key is not None else settings.google_places_api_key
    per_business = photos_per_business or settings.photos_per_business

    if strategy not in STRATEGIES:
        raise PreflightError(f"Unknown strategy '{strategy}'. Expected one of: {', '.join(STRATEGIES)}")

    if strategy == "cached":
        source: PhotoSource = CachedUrlPhotoSource(per_business)
    elif strategy == "base64":
        source = InlinePhotoSource(per_business)
    else:
        google = GooglePlacesPhotoSource(GooglePlacesClient(api_key or "", session=session), per_business)
        if strategy == "google":
            source = google
        else:
            source = FallbackPhotoSource([google, StockPhotoSource(per_business)], per_business)

    if source.requires_api_key and not api_key:
        raise PreflightError("Google Places API key not configured")
    return source
