"""Exception types shared by the resolver, the ingestion pipeline and the API."""
from typing import Optional


class DirectoryError(Exception):
    """Base class for all directory service errors."""

    status_code = 500


class SourceError(DirectoryError):
    """A data tier failed to produce usable records."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class TransportError(SourceError):
    """Network failure or non-OK HTTP status."""


class RoutingError(SourceError):
    """An HTML page came back where JSON was expected.

    This is almost always the API path falling through to the single-page
    app's index page, so it is reported separately from payload errors.
    """


class InvalidPayloadError(SourceError):
    """Non-JSON content type or a body that does not parse as JSON."""


class EmptyResultError(SourceError):
    """The tier answered successfully but had no records."""


class PlacesApiError(DirectoryError):
    """Google Places returned a non-OK status."""

    status_code = 502

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class QuotaExceededError(PlacesApiError):
    """REQUEST_DENIED or OVER_QUERY_LIMIT from Google Places."""


class UploadError(DirectoryError):
    """The static file host rejected or failed an upload."""

    status_code = 502


class IngestionError(DirectoryError):
    """A single business could not be ingested."""


class PreflightError(DirectoryError):
    """A batch cannot start (missing API key, unknown strategy, bad input)."""

    status_code = 400


class NotFoundError(DirectoryError):
    status_code = 404


class JobConflictError(DirectoryError):
    """Another ingestion job is already running."""

    status_code = 409


class ValidationError(DirectoryError):
    status_code = 400


def classify_error(exc: BaseException) -> str:
    """Map an exception to a coarse category used in logs and summaries."""
    if isinstance(exc, RoutingError):
        return "routing"
    if isinstance(exc, InvalidPayloadError):
        return "payload"
    if isinstance(exc, EmptyResultError):
        return "empty"
    if isinstance(exc, TransportError):
        return "transport"
    if isinstance(exc, QuotaExceededError):
        return "quota"
    if isinstance(exc, UploadError):
        return "upload"
    if isinstance(exc, (IngestionError, PlacesApiError)):
        return "ingestion"
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return "transport"
    return "unknown"
