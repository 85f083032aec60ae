"""Stock-image fallback and source chaining."""
from typing import Callable, Dict, List, Sequence
from loguru import logger

from errors import IngestionError, QuotaExceededError
from schemas import BusinessRecord
from sources.base import PhotoBundle, PhotoSource
from utils.places_client import download_image

STOCK_IMAGES: Dict[str, List[str]] = {
    "visa": [
        "https://images.unsplash.com/photo-1541701494587-cb58502866ab?w=400",
        "https://images.unsplash.com/photo-1578662996442-48f60103fc96?w=400",
        "https://images.unsplash.com/photo-1450101499163-c8848c66ca85?w=400",
    ],
    "attestation": [
        "https://images.unsplash.com/photo-1450101499163-c8848c66ca85?w=400",
        "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=400",
        "https://images.unsplash.com/photo-1554224155-8d04cb21cd6c?w=400",
    ],
    "document": [
        "https://images.unsplash.com/photo-1578662996442-48f60103fc96?w=400",
        "https://images.unsplash.com/photo-1450101499163-c8848c66ca85?w=400",
        "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=400",
    ],
    "immigration": [
        "https://images.unsplash.com/photo-1541701494587-cb58502866ab?w=400",
        "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=400",
        "https://images.unsplash.com/photo-1541746972996-4e0b0f93e586?w=400",
    ],
    "default": [
        "https://images.unsplash.com/photo-1486406146926-c627a92ad1ab?w=400",
        "https://images.unsplash.com/photo-1512453979798-5ea266f8880c?w=400",
        "https://images.unsplash.com/photo-1580834259967-f0fe83d7a088?w=400",
        "https://images.unsplash.com/photo-1450101499163-c8848c66ca85?w=400",
    ],
}


def stock_images_for(business: BusinessRecord) -> List[str]:
    """Pick the stock image set whose keyword appears in the name or category."""
    name = business.name.lower()
    category = (business.category or "").lower()
    for keyword, urls in STOCK_IMAGES.items():
        if keyword == "default":
            continue
        if keyword in name or keyword in category:
            return urls
    return STOCK_IMAGES["default"]


class StockPhotoSource(PhotoSource):
    """Category-appropriate stock images."""

    name = "stock"

    def __init__(self, photos_per_business: int = 5, downloader: Callable[[str], bytes] = download_image):
        super().__init__(photos_per_business)
        self.downloader = downloader

    def fetch(self, business: BusinessRecord) -> PhotoBundle:
        images: List[bytes] = []
        for url in stock_images_for(business):
            try:
                images.append(self.downloader(url))
            except Exception as e:
                logger.warning(f"Stock image {url} failed: {e}")
        if not images:
            raise IngestionError("All stock images failed")
        return self.bundle_from(images)


class FallbackPhotoSource(PhotoSource):
    """Try each source in order; the first non-empty bundle wins."""

    name = "hybrid"

    def __init__(self, sources: Sequence[PhotoSource], photos_per_business: int = 5):
        super().__init__(photos_per_business)
        self.sources = list(sources)
        self.requires_api_key = any(s.requires_api_key for s in self.sources)

    def fetch(self, business: BusinessRecord) -> PhotoBundle:
        failures = []
        for source in self.sources:
            try:
                bundle = source.fetch(business)
            except QuotaExceededError as e:
                failures.append(f"{source.name}: {e}")
                logger.warning(f"{source.name} quota hit for {business.name}, falling back")
                continue
            except Exception as e:
                failures.append(f"{source.name}: {e}")
                continue
            if not bundle.empty:
                return bundle
            failures.append(f"{source.name}: no images")
        raise IngestionError("; ".join(failures) or "No sources configured")
