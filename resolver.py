"""
Tiered data resolution.

A page asks for data from an ordered list of sources (live API, static
export, hardcoded samples). The first source that yields a non-empty,
parseable list wins. Failures are logged and absorbed; the caller always
gets a Resolution back, never an exception.
"""
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from loguru import logger

from config import settings
from errors import (
    EmptyResultError,
    InvalidPayloadError,
    RoutingError,
    SourceError,
    TransportError,
    classify_error,
)

Extractor = Union[str, Callable[[Any], Any], None]

ROUTING_ERROR_MESSAGE = "API returned invalid response"
SAMPLE_DATA_MESSAGE = "Demo mode: showing sample data"
CACHED_DATA_MESSAGE = "Showing cached data"
NO_DATA_MESSAGE = "Unable to load data"

_HTML_PREFIXES = ("<!doctype", "<html")


def looks_like_html(body: str) -> bool:
    return body.lstrip()[:20].lower().startswith(_HTML_PREFIXES)


def html_title(body: str) -> Optional[str]:
    """Return the <title> of an HTML page, if any."""
    try:
        soup = BeautifulSoup(body, "lxml")
    except Exception as e:
        logger.debug(f"Could not parse HTML body: {e}")
        return None
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _extract(payload: Any, extract: Extractor) -> List[Any]:
    if extract is None:
        return _as_list(payload)
    if callable(extract):
        return _as_list(extract(payload))
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return _as_list(payload.get(extract))
    return []


class Source(ABC):
    """One tier in a fallback chain."""

    name: str = "source"

    @abstractmethod
    def fetch(self) -> List[Any]:
        """
        Produce records for this tier.

        Returns:
            A list of records (possibly empty)

        Raises:
            SourceError on any transport or format failure
        """
        pass


class HttpSource(Source):
    """Live API tier with cache busting and no-cache headers."""

    def __init__(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        extract: Extractor = "businesses",
        name: str = "api",
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ):
        self.name = name
        self.url = urljoin((base_url or settings.api_base_url).rstrip("/") + "/", path.lstrip("/"))
        self.params = dict(params or {})
        self.extract = extract
        self.session = session or requests.Session()
        self.timeout = timeout or settings.request_timeout

    def fetch(self) -> List[Any]:
        params = {**self.params, "_t": int(time.time() * 1000)}
        headers = {
            "Accept": "application/json",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }
        logger.debug(f"Fetching {self.url} with params {params}")

        try:
            response = self.session.get(self.url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {self.url} failed: {e}", self.name) from e

        body = response.text or ""
        if looks_like_html(body):
            title = html_title(body)
            logger.warning(f"{self.url} returned an HTML page ({title or 'untitled'}) instead of JSON")
            raise RoutingError(
                f"{ROUTING_ERROR_MESSAGE}: received HTML instead of JSON from {self.url}",
                self.name,
            )

        if response.status_code != 200:
            raise TransportError(f"HTTP {response.status_code} from {self.url}", self.name)

        content_type = response.headers.get("content-type", "")
        if "json" not in content_type.lower():
            raise InvalidPayloadError(
                f"Expected JSON from {self.url}, got content type '{content_type or 'none'}'",
                self.name,
            )

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise InvalidPayloadError(f"Invalid JSON from {self.url}: {e}", self.name) from e

        records = _extract(payload, self.extract)
        if not records:
            raise EmptyResultError(f"No records from {self.url}", self.name)
        return records


class StaticJsonSource(Source):
    """Bundled JSON export on disk."""

    def __init__(
        self,
        path: Optional[str] = None,
        extract: Extractor = "businesses",
        predicate: Optional[Callable[[Any], bool]] = None,
        name: str = "static",
    ):
        self.name = name
        self.path = Path(path or settings.static_data_path)
        self.extract = extract
        self.predicate = predicate

    def fetch(self) -> List[Any]:
        if not self.path.exists():
            raise TransportError(f"Static data file not found: {self.path}", self.name)

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise InvalidPayloadError(f"Invalid JSON in {self.path}: {e}", self.name) from e

        records = _extract(payload, self.extract)
        if self.predicate:
            records = [r for r in records if self.predicate(r)]
        if not records:
            raise EmptyResultError(f"No records in {self.path}", self.name)
        return records


class SampleSource(Source):
    """Hardcoded in-source records."""

    def __init__(self, records: Sequence[Any], predicate: Optional[Callable[[Any], bool]] = None, name: str = "sample"):
        self.name = name
        self.records = list(records)
        self.predicate = predicate

    def fetch(self) -> List[Any]:
        records = [dict(r) if isinstance(r, dict) else r for r in self.records]
        if self.predicate:
            records = [r for r in records if self.predicate(r)]
        if not records:
            raise EmptyResultError("No sample records", self.name)
        return records


class CallableSource(Source):
    """Wrap a plain function returning a list, e.g. a database query."""

    def __init__(self, func: Callable[[], List[Any]], name: str):
        self.name = name
        self.func = func

    def fetch(self) -> List[Any]:
        try:
            records = _as_list(self.func())
        except SourceError:
            raise
        except Exception as e:
            raise TransportError(f"{self.name} failed: {e}", self.name) from e
        if not records:
            raise EmptyResultError(f"No records from {self.name}", self.name)
        return records


@dataclass
class Resolution:
    """Outcome of a fallback chain."""

    data: List[Any] = field(default_factory=list)
    source_used: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    failures: List[Dict[str, str]] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)

    @property
    def ok(self) -> bool:
        return self.source_used is not None


def _banner(source_used: Optional[str], failures: List[Dict[str, str]]) -> Optional[str]:
    if any(f["kind"] == "routing" for f in failures):
        return ROUTING_ERROR_MESSAGE
    if source_used == "sample":
        return SAMPLE_DATA_MESSAGE
    if source_used is None:
        return NO_DATA_MESSAGE
    if failures:
        return CACHED_DATA_MESSAGE
    return None


def resolve_with_fallback(tiers: Sequence[Source]) -> Resolution:
    """
    Try each tier in order and return the first non-empty result.

    Args:
        tiers: Sources ordered from highest to lowest fidelity

    Returns:
        Resolution carrying the data, the name of the tier that produced it,
        the first failure message (if any tier failed) and a user-facing
        banner message when the result is degraded.
    """
    failures: List[Dict[str, str]] = []

    for tier in tiers:
        try:
            records = tier.fetch()
        except Exception as e:
            kind = classify_error(e)
            logger.warning(f"Tier '{tier.name}' failed ({kind}): {e}")
            failures.append({"source": tier.name, "kind": kind, "error": str(e)})
            continue

        if not records:
            failures.append({"source": tier.name, "kind": "empty", "error": f"No records from {tier.name}"})
            continue

        logger.info(f"Loaded {len(records)} records from tier '{tier.name}'")
        return Resolution(
            data=records,
            source_used=tier.name,
            error=failures[0]["error"] if failures else None,
            message=_banner(tier.name, failures),
            failures=failures,
        )

    logger.error(f"All {len(tiers)} tiers failed")
    return Resolution(
        data=[],
        source_used=None,
        error=failures[0]["error"] if failures else NO_DATA_MESSAGE,
        message=_banner(None, failures),
        failures=failures,
    )
