"""Google Places API client utility."""
from typing import Any, Dict, List, Optional
from loguru import logger
import requests

from config import settings
from errors import PlacesApiError, QuotaExceededError, TransportError
from utils.retry import retry_call

QUOTA_STATUSES = ("REQUEST_DENIED", "OVER_QUERY_LIMIT")

IMAGE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
    "Accept": "image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class _TransientHttpError(Exception):
    """5xx or connection failure worth retrying."""


class GooglePlacesClient:
    """Client for the Google Places web service."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None, timeout: Optional[int] = None):
        """
        Initialize Google Places client.

        Args:
            api_key: Google Places API key
            session: Optional requests session (shared connection pool)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = "https://maps.googleapis.com/maps/api/place"
        self.session = session or requests.Session()
        self.timeout = timeout or settings.request_timeout

    def _get(self, path: str, params: Dict[str, Any], **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path}"

        def attempt():
            try:
                response = self.session.get(url, params={**params, "key": self.api_key}, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                raise _TransientHttpError(str(e)) from e
            if response.status_code >= 500:
                raise _TransientHttpError(f"HTTP {response.status_code}")
            return response

        try:
            return retry_call(attempt, retry_on=(_TransientHttpError,))
        except _TransientHttpError as e:
            raise TransportError(f"Google Places {path} failed: {e}", "google") from e

    def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        response = self._get(path, params)
        if response.status_code != 200:
            raise TransportError(f"Google Places {path} returned HTTP {response.status_code}", "google")

        try:
            data = response.json()
        except ValueError as e:
            raise PlacesApiError(f"Google Places {path} returned invalid JSON") from e

        status = data.get("status", "UNKNOWN_ERROR")
        if status in QUOTA_STATUSES:
            message = data.get("error_message") or status
            raise QuotaExceededError(f"Google Places {status}: {message}", status=status)
        if status not in ("OK", "ZERO_RESULTS"):
            raise PlacesApiError(f"Google Places {path} status {status}", status=status)
        return data

    def find_place(self, query: str) -> Optional[str]:
        """
        Find a place id from free text.

        Args:
            query: Business name, optionally with a location

        Returns:
            First matching place id or None
        """
        logger.debug(f"Finding place for: {query}")
        data = self._get_json(
            "findplacefromtext/json",
            {"input": query, "inputtype": "textquery", "fields": "place_id"},
        )
        candidates = data.get("candidates") or []
        return candidates[0].get("place_id") if candidates else None

    def text_search(self, query: str) -> List[Dict[str, Any]]:
        data = self._get_json("textsearch/json", {"query": query})
        return data.get("results") or []

    def place_details(self, place_id: str, fields: str = "name,photos,rating,user_ratings_total") -> Dict[str, Any]:
        data = self._get_json("details/json", {"place_id": place_id, "fields": fields})
        return data.get("result") or {}

    def photo_references(self, place_id: str) -> List[str]:
        details = self.place_details(place_id, fields="name,photos")
        return [p["photo_reference"] for p in details.get("photos") or [] if p.get("photo_reference")]

    def reviews(self, place_id: str) -> List[Dict[str, Any]]:
        details = self.place_details(place_id, fields="reviews")
        return details.get("reviews") or []

    def get_photo(self, photo_reference: str, max_width: int = 800) -> bytes:
        """
        Download the bytes for a photo reference.

        Args:
            photo_reference: Opaque token from Place Details
            max_width: Maximum image width requested from the API

        Returns:
            Raw image bytes
        """
        response = self._get(
            "photo",
            {"maxwidth": max_width, "photo_reference": photo_reference},
            headers=IMAGE_HEADERS,
            allow_redirects=True,
        )
        if response.status_code == 403:
            raise QuotaExceededError("Google Places photo request denied (403)", status="REQUEST_DENIED")
        if response.status_code != 200:
            raise TransportError(f"Photo download failed: HTTP {response.status_code}", "google")
        if not response.content:
            raise TransportError("Photo download returned an empty body", "google")
        return response.content


def download_image(url: str, session: Optional[requests.Session] = None, timeout: Optional[int] = None) -> bytes:
    """Download an image from a plain URL with browser-like headers."""
    http = session or requests
    try:
        response = http.get(url, headers=IMAGE_HEADERS, timeout=timeout or settings.request_timeout)
    except requests.RequestException as e:
        raise TransportError(f"Failed to fetch image {url}: {e}") from e
    if response.status_code != 200:
        raise TransportError(f"Failed to fetch image {url}: HTTP {response.status_code}")
    if not response.content:
        raise TransportError(f"Empty image body from {url}")
    return response.content
