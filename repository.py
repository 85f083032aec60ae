"""Business and review persistence."""
import json
from typing import Dict, List, Optional
from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from models import Business, Review
from schemas import BusinessRecord, PhotoRecord, ReviewRecord

_RECORD_FIELDS = {
    "name", "address", "category", "phone", "website", "email", "rating",
    "review_count", "logo_url", "business_status", "has_target_keyword",
    "latitude", "longitude",
}


def business_to_record(business: Business) -> BusinessRecord:
    photos = []
    for index, photo in enumerate(business.photo_list):
        if isinstance(photo, dict):
            photo.setdefault("id", f"{business.id}-photo-{index + 1}")
            photos.append(PhotoRecord.model_validate(photo))
    return BusinessRecord(
        id=business.id,
        name=business.name,
        address=business.address or "",
        category=business.category or "",
        phone=business.phone,
        website=business.website,
        email=business.email,
        rating=min(max(business.rating or 0.0, 0.0), 5.0),
        review_count=max(business.review_count or 0, 0),
        logo_url=business.logo_url,
        photos=photos,
        business_status=business.business_status,
        has_target_keyword=bool(business.has_target_keyword),
        latitude=business.latitude,
        longitude=business.longitude,
        photo_references=[str(r) for r in business.photo_reference_list],
    )


def review_to_record(review: Review) -> ReviewRecord:
    return ReviewRecord(
        id=review.id,
        author_name=review.author_name or "Anonymous",
        rating=min(max(review.rating or 1, 1), 5),
        text=review.text or "",
        time_ago=review.time_ago,
        profile_photo_url=review.profile_photo_url,
    )


class BusinessRepository:
    """Data access for businesses and their reviews."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def save_business(self, record: BusinessRecord) -> Business:
        """
        Insert or update a business keyed by its id.

        Args:
            record: Business record to persist

        Returns:
            Business model instance
        """
        data = record.model_dump(include=_RECORD_FIELDS)
        existing = self.db.get(Business, record.id)

        if existing:
            for key, value in data.items():
                if value is not None:
                    setattr(existing, key, value)
            if record.photos:
                existing.photos = json.dumps([p.to_dict() for p in record.photos])
            if record.photo_references:
                existing.photo_references = json.dumps(record.photo_references)
            logger.info(f"Updated business: {existing.name}")
            return existing

        business = Business(
            id=record.id,
            photos=json.dumps([p.to_dict() for p in record.photos]),
            photo_references=json.dumps(record.photo_references),
            **data,
        )
        self.db.add(business)
        logger.info(f"Created new business: {business.name}")
        return business

    def commit(self):
        """Commit database changes."""
        try:
            self.db.commit()
            logger.debug("Database changes committed")
        except Exception as e:
            logger.error(f"Error committing to database: {e}")
            self.db.rollback()
            raise

    def get_business(self, business_id: str) -> Optional[Business]:
        return self.db.get(Business, business_id)

    def _listing_query(self, search: Optional[str] = None, category: Optional[str] = None):
        query = self.db.query(Business).filter(Business.is_active.is_(True))
        if category and category != "all":
            query = query.filter(Business.category == category)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Business.name).like(pattern),
                    func.lower(Business.address).like(pattern),
                    func.lower(Business.category).like(pattern),
                )
            )
        return query

    def list_businesses(
        self,
        limit: Optional[int] = 1000,
        offset: int = 0,
        search: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Business]:
        """Active businesses ordered by keyword match, rating and review count."""
        return (
            self._listing_query(search, category)
            .order_by(
                Business.has_target_keyword.desc(),
                Business.rating.desc(),
                Business.review_count.desc(),
                Business.id,
            )
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_businesses(self, search: Optional[str] = None, category: Optional[str] = None) -> int:
        return self._listing_query(search, category).count()

    def get_categories(self) -> List[str]:
        rows = (
            self.db.query(Business.category)
            .filter(Business.category.isnot(None), Business.category != "")
            .distinct()
            .order_by(Business.category)
            .all()
        )
        return [row[0] for row in rows]

    def get_batch(self, batch_number: int, batch_size: int) -> List[Business]:
        """Fixed-size slice of the business table, in stable id order."""
        offset = (batch_number - 1) * batch_size
        return self.db.query(Business).order_by(Business.id).offset(offset).limit(batch_size).all()

    def count_all(self) -> int:
        return self.db.query(Business).count()

    def update_images(self, business_id: str, logo_url: Optional[str], photo_urls: List[str]) -> Business:
        """Point a business's logo and photos at newly hosted files."""
        business = self.get_business(business_id)
        if business is None:
            raise KeyError(business_id)

        if logo_url:
            business.logo_url = logo_url
        if photo_urls:
            business.photos = json.dumps([
                PhotoRecord(id=f"{business_id}-photo-{i + 1}", s3_url=url, source="s3").to_dict()
                for i, url in enumerate(photo_urls)
            ])
        return business

    def get_reviews(self, business_id: str) -> List[Review]:
        return (
            self.db.query(Review)
            .filter(Review.business_id == business_id)
            .order_by(Review.created_at.desc(), Review.id)
            .all()
        )

    def save_reviews(self, business_id: str, reviews: List[ReviewRecord]) -> int:
        """Upsert reviews for a business keyed by review id."""
        saved = 0
        for record in reviews:
            data: Dict = {
                "business_id": business_id,
                "author_name": record.author_name,
                "rating": record.rating,
                "text": record.text,
                "time_ago": record.time_ago,
                "profile_photo_url": record.profile_photo_url,
            }
            existing = self.db.get(Review, record.id)
            if existing:
                for key, value in data.items():
                    setattr(existing, key, value)
            else:
                self.db.add(Review(id=record.id, **data))
            saved += 1
        return saved
