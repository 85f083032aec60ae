"""Database models for directory data."""
import json
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, Boolean, ForeignKey
from sqlalchemy.sql import func
from database import Base


def _load_json_list(value):
    if not value:
        return []
    try:
        data = json.loads(value)
    except (TypeError, ValueError):
        return []
    return data if isinstance(data, list) else []


class Business(Base):
    """Model for storing a directory entry, keyed by Google Place ID."""

    __tablename__ = "businesses"

    id = Column(String(255), primary_key=True, index=True)

    # Basic Information
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(255), index=True)
    business_status = Column(String(50))
    has_target_keyword = Column(Boolean, default=False)

    # Contact Information
    phone = Column(String(50))
    email = Column(String(255))
    website = Column(String(500))

    # Location
    address = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)

    # Reputation
    rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)

    # Media (photos and photo_references are JSON strings)
    logo_url = Column(Text)
    photos = Column(Text)
    photo_references = Column(Text)

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    is_active = Column(Boolean, default=True)

    @property
    def photo_list(self):
        return _load_json_list(self.photos)

    @property
    def photo_reference_list(self):
        return _load_json_list(self.photo_references)

    def __repr__(self):
        return f"<Business(id='{self.id}', name='{self.name}')>"


class Review(Base):
    """Model for a customer review of a business."""

    __tablename__ = "reviews"

    id = Column(String(255), primary_key=True)
    business_id = Column(String(255), ForeignKey("businesses.id"), nullable=False, index=True)
    author_name = Column(String(255))
    rating = Column(Integer)
    text = Column(Text)
    time_ago = Column(String(100))
    profile_photo_url = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Review(id='{self.id}', business_id='{self.business_id}')>"


class Report(Base):
    """Model for a complaint filed against a business."""

    __tablename__ = "reports"

    id = Column(String(100), primary_key=True)
    company_id = Column(String(255), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    company_location = Column(String(255))
    issue_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    amount_lost = Column(Float, default=0.0)
    date_of_incident = Column(String(50))
    evidence_description = Column(Text)
    employee_name = Column(String(255))

    # Reporter contact (never exposed on public listings)
    reporter_name = Column(String(255))
    reporter_email = Column(String(255))
    reporter_phone = Column(String(50))

    payment_receipt_path = Column(String(500))
    agreement_copy_path = Column(String(500))

    status = Column(String(20), nullable=False, default="pending", index=True)
    admin_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Report(id='{self.id}', status='{self.status}')>"


class IngestionJob(Base):
    """Model for an image ingestion run and its progress counters."""

    __tablename__ = "ingestion_jobs"

    id = Column(String(64), primary_key=True)
    kind = Column(String(20), nullable=False, default="batch")  # 'batch' or 'all'
    strategy = Column(String(20), nullable=False)
    batch_number = Column(Integer, default=1)
    concurrency = Column(Integer, default=1)
    state = Column(String(20), nullable=False, default="queued", index=True)

    processed = Column(Integer, default=0)
    successful = Column(Integer, default=0)
    failed = Column(Integer, default=0)
    total_logos = Column(Integer, default=0)
    total_photos = Column(Integer, default=0)
    errors = Column(Text)  # JSON list of error strings
    has_more = Column(Boolean, default=False)
    detail = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    finished_at = Column(DateTime(timezone=True))

    @property
    def error_list(self):
        return _load_json_list(self.errors)

    def __repr__(self):
        return f"<IngestionJob(id='{self.id}', state='{self.state}')>"
