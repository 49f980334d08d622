# app/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from .. import crud, schemas, services
from ..cache import CacheStore, get_cache
from ..db import get_db
from ..utils import logger

router = APIRouter()


def search_filters(
    search: Optional[str] = Query(None),
    property_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    bedrooms: Optional[str] = Query(None),
    bathrooms: Optional[str] = Query(None),
    min_square_feet: Optional[str] = Query(None),
    max_square_feet: Optional[str] = Query(None),
    min_year_built: Optional[str] = Query(None),
    max_year_built: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    zip_code: Optional[str] = Query(None),
    amenities: Optional[List[str]] = Query(None),
    featured: Optional[str] = Query(None),
    bounds: Optional[str] = Query(None),
    latitude: Optional[str] = Query(None),
    longitude: Optional[str] = Query(None),
    radius: Optional[str] = Query(None),
    created_after: Optional[datetime] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_order: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None),
) -> schemas.SearchFilters:
    # raw strings go through SearchFilters so blank values normalize to "absent"
    raw = dict(locals())
    try:
        return schemas.SearchFilters.model_validate(raw)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_context=False))


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/search", response_model=schemas.SearchPage)
def search(
    filters: schemas.SearchFilters = Depends(search_filters),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    try:
        return services.search_properties(db, filters, cache)
    except SQLAlchemyError as e:
        logger.exception("Search failed: %s", e)
        raise HTTPException(status_code=500, detail="Search failed")


@router.get("/search/bounds", response_model=schemas.SearchPage)
def search_bounds(
    north: float = Query(...),
    south: float = Query(...),
    east: float = Query(...),
    west: float = Query(...),
    filters: schemas.SearchFilters = Depends(search_filters),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    box = schemas.Bounds(north=north, south=south, east=east, west=west)
    try:
        return services.search_by_bounds(db, box, filters, cache)
    except SQLAlchemyError as e:
        logger.exception("Bounds search failed: %s", e)
        raise HTTPException(status_code=500, detail="Search failed")


@router.get("/search/suggestions", response_model=schemas.SuggestionList)
def suggestions(q: str = "", db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache)):
    return {"suggestions": services.get_suggestions(db, q, cache)}


@router.get("/search/filter-options")
def filter_options(db: Session = Depends(get_db)):
    return services.get_filter_options(db)


def _load_property(db: Session, property_id: int):
    prop = crud.get_property(db, property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@router.get("/properties/{property_id}/nearby", response_model=List[schemas.PropertySummary])
def nearby(
    property_id: int,
    radius: float = Query(10, ge=0),
    limit: int = Query(6, ge=1, le=50),
    same_type: bool = False,
    db: Session = Depends(get_db),
):
    prop = _load_property(db, property_id)
    if prop.latitude is None or prop.longitude is None:
        return []
    return services.find_nearby(
        db, float(prop.latitude), float(prop.longitude), radius,
        exclude_property_id=prop.id,
        property_type=prop.property_type if same_type else None,
        limit=limit,
    )


@router.get("/properties/{property_id}/similar", response_model=List[schemas.PropertySummary])
def similar(property_id: int, limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    prop = _load_property(db, property_id)
    return services.find_similar(db, prop, limit=limit)


@router.post("/saved-searches/check")
def check_saved_searches(db: Session = Depends(get_db)):
    try:
        notified = services.check_all_saved_searches(db)
        return {"status": "ok", "notified": notified}
    except SQLAlchemyError as e:
        logger.exception("Saved search check failed: %s", e)
        raise HTTPException(status_code=500, detail="Saved search check failed")
