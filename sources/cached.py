"""Photo sources that re-host images the business record already carries."""
import base64
import binascii
from typing import Callable, List, Optional
from loguru import logger

from errors import IngestionError
from schemas import BusinessRecord
from sources.base import PhotoBundle, PhotoSource
from utils.places_client import download_image


def _is_http(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


class CachedUrlPhotoSource(PhotoSource):
    """Download the http(s) logo and photo URLs stored on the record."""

    name = "cached"

    def __init__(self, photos_per_business: int = 5, downloader: Callable[[str], bytes] = download_image):
        super().__init__(photos_per_business)
        self.downloader = downloader

    def fetch(self, business: BusinessRecord) -> PhotoBundle:
        bundle = PhotoBundle(method=self.name)

        if _is_http(business.logo_url):
            bundle.logo = self.downloader(business.logo_url)

        urls = [p.url for p in business.photos if _is_http(p.url)]
        for url in urls[:self.photos_per_business]:
            try:
                bundle.photos.append(self.downloader(url))
            except Exception as e:
                logger.warning(f"Cached photo {url} for {business.name} failed: {e}")

        if bundle.empty:
            raise IngestionError("No cached image URLs")
        return bundle


def decode_data_uri(value: str) -> bytes:
    """Decode a base64 payload with or without a data: URI prefix."""
    payload = value.split(",", 1)[1] if value.startswith("data:") else value
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise IngestionError(f"Invalid base64 image: {e}") from e


class InlinePhotoSource(PhotoSource):
    """Decode base64 images stored inline on the record."""

    name = "base64"

    def fetch(self, business: BusinessRecord) -> PhotoBundle:
        bundle = PhotoBundle(method=self.name)

        if business.logo_url and business.logo_url.startswith("data:"):
            bundle.logo = decode_data_uri(business.logo_url)

        inline: List[str] = [p.base64 for p in business.photos if p.base64]
        for payload in inline[:self.photos_per_business]:
            bundle.photos.append(decode_data_uri(payload))

        if bundle.empty:
            raise IngestionError("No inline base64 images")
        return bundle
