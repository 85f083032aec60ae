"""Directory API client with tiered fallback to the static export and sample data."""
from typing import Any, Callable, Optional
from loguru import logger
import requests

from config import settings
from directory import filter_businesses, to_business_records, to_review_records
from resolver import HttpSource, Resolution, SampleSource, StaticJsonSource, resolve_with_fallback
from sample_data import SAMPLE_BUSINESSES, get_fallback_reviews


def _id_predicate(business_id: str) -> Callable[[Any], bool]:
    return lambda item: isinstance(item, dict) and item.get("id") == business_id


class DirectoryClient:
    """
    Load directory data the way the public pages do.

    Every call walks live API -> static export -> hardcoded samples and
    returns a Resolution whose data has been parsed into records. Calls
    never raise; a total failure comes back as an empty Resolution with a
    banner message.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        static_data_path: Optional[str] = None,
        samples=None,
    ):
        self.base_url = base_url or settings.api_base_url
        self.session = session or requests.Session()
        self.static_data_path = static_data_path
        self.samples = SAMPLE_BUSINESSES if samples is None else samples

    def _http(self, path: str, params=None, extract="businesses") -> HttpSource:
        return HttpSource(path, params=params, extract=extract, base_url=self.base_url, session=self.session)

    def _static(self, predicate=None) -> StaticJsonSource:
        return StaticJsonSource(self.static_data_path, predicate=predicate)

    def list_businesses(
        self,
        limit: int = 1000,
        search: Optional[str] = None,
        category: Optional[str] = None,
        sort: str = "relevance",
    ) -> Resolution:
        """Directory listing, sorted and then filtered locally."""
        resolution = resolve_with_fallback([
            self._http("/api/dubai-visa-services", {"limit": limit}),
            self._static(),
            SampleSource(self.samples),
        ])
        resolution.data = filter_businesses(to_business_records(resolution.data), search, category, sort)
        if resolution.message:
            logger.info(f"Directory banner: {resolution.message}")
        return resolution

    def get_business(self, business_id: str) -> Resolution:
        resolution = resolve_with_fallback([
            self._http(f"/api/business-db/{business_id}", extract="business"),
            self._static(_id_predicate(business_id)),
            SampleSource(self.samples, predicate=_id_predicate(business_id)),
        ])
        resolution.data = to_business_records(resolution.data)
        return resolution

    def search_companies(self, term: str, limit: int = 10) -> Resolution:
        """Company lookup for the complaint form; no matches is an empty result, not a fallback."""
        resolution = self.list_businesses(search=term)
        resolution.data = resolution.data[:limit]
        return resolution

    def get_reviews(self, business_id: str) -> Resolution:
        resolution = resolve_with_fallback([
            self._http(f"/api/business-reviews/{business_id}", extract="reviews"),
            SampleSource(get_fallback_reviews(business_id)),
        ])
        resolution.data = to_review_records(resolution.data)
        return resolution
