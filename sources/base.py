"""Base photo source with common functionality."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from schemas import BusinessRecord


@dataclass
class PhotoBundle:
    """Image bytes fetched for one business: a logo plus ordered photos."""

    logo: Optional[bytes] = None
    photos: List[bytes] = field(default_factory=list)
    method: str = "none"

    @property
    def empty(self) -> bool:
        return self.logo is None and not self.photos


class PhotoSource(ABC):
    """Base class for all photo sources."""

    name = "base"
    requires_api_key = False

    def __init__(self, photos_per_business: int = 5):
        """
        Initialize the source.

        Args:
            photos_per_business: Maximum number of non-logo photos to return
        """
        self.photos_per_business = photos_per_business

    @abstractmethod
    def fetch(self, business: BusinessRecord) -> PhotoBundle:
        """
        Fetch image bytes for a business.

        Args:
            business: Business to fetch images for

        Returns:
            PhotoBundle, possibly empty

        Raises:
            Any error that prevents fetching; the pipeline records it
            against this business and moves on.
        """
        pass

    def bundle_from(self, images: List[bytes]) -> PhotoBundle:
        """First image becomes the logo, the rest become photos."""
        if not images:
            return PhotoBundle(method=self.name)
        return PhotoBundle(
            logo=images[0],
            photos=images[1:1 + self.photos_per_business],
            method=self.name,
        )
