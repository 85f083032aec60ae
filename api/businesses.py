"""Directory listing, business detail, photos, reviews and categories."""
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from directory import SORT_KEYS, categories_of, filter_businesses, to_business_records
from errors import NotFoundError, ValidationError
from repository import BusinessRepository, business_to_record
from resolver import CallableSource, StaticJsonSource, resolve_with_fallback
from reviews import ReviewService
from schemas import PhotoRecord
from utils.places_client import GooglePlacesClient


def default_places_client() -> Optional[GooglePlacesClient]:
    if not settings.google_places_api_key:
        return None
    return GooglePlacesClient(settings.google_places_api_key)


def placeholder_photo(business_id: str) -> PhotoRecord:
    return PhotoRecord(
        id=f"{business_id}-default",
        url=f"{settings.image_base_url.rstrip('/')}/placeholder.jpg",
        caption="No photos available",
        source="default",
    )


def create_businesses_router(
    *,
    places_factory: Callable[[], Optional[GooglePlacesClient]] = default_places_client,
    static_data_path: Optional[str] = None,
) -> APIRouter:
    router = APIRouter()

    def static_source(predicate=None) -> StaticJsonSource:
        return StaticJsonSource(static_data_path, predicate=predicate)

    def listing(db: Session, limit: int, offset: int, search: Optional[str], category: Optional[str], sort: str) -> Dict[str, Any]:
        if sort not in SORT_KEYS:
            raise ValidationError(f"Unknown sort '{sort}'. Expected one of: {', '.join(SORT_KEYS)}")

        repo = BusinessRepository(db)
        database = CallableSource(
            lambda: [business_to_record(b) for b in repo.list_businesses(limit=None)],
            name="database",
        )
        resolution = resolve_with_fallback([database, static_source()])

        matches = filter_businesses(to_business_records(resolution.data), search, category, sort)
        page = matches[offset:offset + limit]
        return {
            "businesses": [b.to_dict() for b in page],
            "total": len(matches),
            "source": resolution.source_used,
            "message": resolution.message,
        }

    @router.get("/api/dubai-visa-services")
    def dubai_visa_services(
        limit: int = Query(1000, ge=1, le=5000),
        offset: int = Query(0, ge=0),
        search: Optional[str] = None,
        category: Optional[str] = None,
        sort: str = "relevance",
        db: Session = Depends(get_db),
    ):
        return listing(db, limit, offset, search, category, sort)

    @router.get("/api/businesses")
    def businesses(
        limit: int = Query(1000, ge=1, le=5000),
        offset: int = Query(0, ge=0),
        search: Optional[str] = None,
        category: Optional[str] = None,
        sort: str = "relevance",
        db: Session = Depends(get_db),
    ):
        return listing(db, limit, offset, search, category, sort)

    @router.get("/api/business-db/{business_id}")
    def business_detail(business_id: str, db: Session = Depends(get_db)):
        repo = BusinessRepository(db)

        def from_database() -> List[Any]:
            business = repo.get_business(business_id)
            return [business_to_record(business)] if business else []

        resolution = resolve_with_fallback([
            CallableSource(from_database, name="database"),
            static_source(lambda item: isinstance(item, dict) and item.get("id") == business_id),
        ])
        records = to_business_records(resolution.data)
        if not records:
            raise NotFoundError(f"Business {business_id} not found")
        return {"business": records[0].to_dict(), "source": resolution.source_used}

    @router.get("/api/business-photos/{business_id}")
    def business_photos(business_id: str, db: Session = Depends(get_db)):
        business = BusinessRepository(db).get_business(business_id)
        if business is None:
            raise NotFoundError(f"Business {business_id} not found")

        photos = [p for p in business_to_record(business).photos if p.display_url()]
        if not photos:
            return {"photos": [placeholder_photo(business_id).to_dict()], "source": "default"}
        return {"photos": [p.to_dict() for p in photos], "source": "database"}

    @router.get("/api/business-reviews/{business_id}")
    def business_reviews(business_id: str, db: Session = Depends(get_db)):
        service = ReviewService(BusinessRepository(db), places_factory())
        reviews, source = service.get_reviews(business_id)
        return {
            "success": True,
            "reviews": [r.to_dict() for r in reviews],
            "source": source,
            "count": len(reviews),
        }

    @router.get("/api/categories")
    def categories(db: Session = Depends(get_db)):
        repo = BusinessRepository(db)
        resolution = resolve_with_fallback([
            CallableSource(repo.get_categories, name="database"),
            CallableSource(lambda: categories_of(to_business_records(static_source().fetch())), name="static"),
        ])
        return {"categories": resolution.data, "source": resolution.source_used}

    return router
