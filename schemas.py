"""
API schemas for directory records.

Field names are snake_case in Python and camelCase on the wire, matching the
payloads the directory front end reads.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class PhotoRecord(_Record):
    id: str
    url: Optional[str] = None
    s3_url: Optional[str] = None
    base64: Optional[str] = None
    caption: Optional[str] = None
    source: Literal["s3", "cache", "api", "default"] = "api"

    def display_url(self) -> Optional[str]:
        """Best URL to render, or None when the caller should show a placeholder."""
        if self.s3_url:
            return self.s3_url
        if self.url:
            return self.url
        if self.base64:
            if self.base64.startswith("data:"):
                return self.base64
            return f"data:image/jpeg;base64,{self.base64}"
        return None


class BusinessRecord(_Record):
    id: str
    name: str
    address: Optional[str] = ""
    category: Optional[str] = ""
    phone: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    rating: float = Field(0.0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    logo_url: Optional[str] = None
    photos: List[PhotoRecord] = Field(default_factory=list)
    business_status: Optional[str] = None
    has_target_keyword: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photo_references: List[str] = Field(default_factory=list)


class ReviewRecord(_Record):
    id: str
    author_name: str
    rating: int = Field(..., ge=1, le=5)
    text: str = ""
    time_ago: Optional[str] = None
    profile_photo_url: Optional[str] = None


class ReportRecord(_Record):
    """Public view of a report; reporter contact fields are never included."""

    id: str
    company_id: str
    company_name: str
    issue_type: str
    description: str
    amount_lost: float = 0.0
    date_of_incident: Optional[str] = None
    evidence_description: Optional[str] = None
    status: Literal["pending", "approved", "rejected"] = "pending"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BatchUploadRequest(_Record):
    batch_number: int = Field(1, ge=1)
    concurrency: Optional[int] = Field(None, ge=1)
    strategy: str = "google"


class AutoProcessRequest(_Record):
    concurrency: Optional[int] = Field(None, ge=1)
    strategy: str = "google"


class ReportStatusUpdate(_Record):
    status: str
    admin_notes: Optional[str] = None


class SyncRequest(_Record):
    queries: Optional[List[str]] = None


class ImportRequest(_Record):
    businesses: List[dict] = Field(default_factory=list)
