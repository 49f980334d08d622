# app/services.py
"""Search orchestration on top of the query builders in ``crud``.

``search_properties`` runs a compiled search through the radius evaluator or
the sort stage, paginates it, and memoizes the page in the shared cache.
The saved-search and price-drop checks reuse the same compiler.
"""
import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from . import crud, geo, schemas
from .cache import CacheStore, SEARCH_CACHE_TTL, SUGGESTION_CACHE_TTL, make_cache_key, remember
from .models import Property, PropertyStatus, PropertyType, SavedSearch
from .utils import logger

BEDROOM_OPTIONS = [1, 2, 3, 4, 5, 6]
BATHROOM_OPTIONS = [1, 1.5, 2, 2.5, 3, 3.5, 4, 4.5, 5]


def to_summary(prop: Property, distance: Optional[float] = None) -> schemas.PropertySummary:
    summary = schemas.PropertySummary.model_validate(prop)
    if distance is not None:
        summary = summary.model_copy(update={"distance": round(distance, 2)})
    return summary


def _paginate(rows, total: int, filters: schemas.SearchFilters) -> schemas.SearchPage:
    return schemas.SearchPage(
        data=rows,
        current_page=filters.page,
        per_page=filters.per_page,
        total=total,
        last_page=max(1, math.ceil(total / filters.per_page)),
    )


def execute_search(db: Session, filters: schemas.SearchFilters, include_unapproved: bool = False) -> schemas.SearchPage:
    """Run the search against the store, bypassing the cache."""
    query = crud.build_search_query(db, filters, include_unapproved)
    offset = (filters.page - 1) * filters.per_page
    radius = filters.radius_query()
    if radius is not None:
        # distance ordering wins over any requested sort while a radius is active
        ranked = geo.within_radius(query.all(), radius.latitude, radius.longitude, radius.radius)
        total = len(ranked)
        rows = [to_summary(p, d) for p, d in ranked[offset:offset + filters.per_page]]
    else:
        query = crud.apply_sort(query, filters.sort_by, filters.sort_order)
        total = query.order_by(None).count()
        rows = [to_summary(p) for p in query.offset(offset).limit(filters.per_page).all()]
    logger.info("Search matched %d properties (page %d)", total, filters.page)
    return _paginate(rows, total, filters)


def search_properties(db: Session, filters: schemas.SearchFilters, cache: CacheStore,
                      include_unapproved: bool = False) -> schemas.SearchPage:
    """Cached search. Pages stay stale for up to ``SEARCH_CACHE_TTL`` seconds."""
    key = make_cache_key("property_search", {
        "filters": filters.normalized(),
        "include_unapproved": include_unapproved,
    })
    payload = remember(
        cache, key, SEARCH_CACHE_TTL,
        lambda: execute_search(db, filters, include_unapproved).model_dump(mode="json"),
    )
    return schemas.SearchPage.model_validate(payload)


def search_by_bounds(db: Session, bounds: schemas.Bounds, filters: schemas.SearchFilters,
                     cache: CacheStore) -> schemas.SearchPage:
    return search_properties(db, filters.model_copy(update={"bounds": bounds}), cache)


def find_nearby(db: Session, latitude: float, longitude: float, radius_miles: float = 10,
                exclude_property_id: Optional[int] = None, property_type: Optional[PropertyType] = None,
                limit: int = 6) -> List[schemas.PropertySummary]:
    candidates = crud.nearby_candidates(
        db, latitude, longitude, radius_miles,
        exclude_property_id=exclude_property_id, property_type=property_type,
    )
    ranked = geo.within_radius(candidates, latitude, longitude, radius_miles)
    return [to_summary(p, d) for p, d in ranked[:limit]]


def find_similar(db: Session, prop: Property, price_variance: float = 0.2,
                 limit: int = 6) -> List[schemas.PropertySummary]:
    return [to_summary(p) for p in crud.similar_properties(db, prop, price_variance, limit)]


def get_suggestions(db: Session, q: str, cache: CacheStore, limit: int = 10) -> List[dict]:
    q = (q or "").strip()
    if len(q) < 2:
        return []

    def build():
        suggestions = []
        for city, count in crud.value_counts(db, Property.city, q, limit=5):
            suggestions.append({"type": "city", "value": city, "label": city, "count": count})
        for state, count in crud.value_counts(db, Property.state, q, limit=3):
            suggestions.append({"type": "state", "value": state, "label": state, "count": count})
        for ptype in PropertyType:
            if q.lower() in ptype.value:
                suggestions.append({
                    "type": "property_type",
                    "value": ptype.value,
                    "label": ptype.value.capitalize(),
                    "count": crud.count_by_type(db, ptype),
                })
        return suggestions[:limit]

    key = make_cache_key("search_suggestions", {"q": q.lower(), "limit": limit})
    return remember(cache, key, SUGGESTION_CACHE_TTL, build)


def get_filter_options(db: Session) -> Dict:
    amenities = defaultdict(list)
    for amenity in crud.list_amenities(db):
        amenities[amenity.category or "other"].append(
            {"id": amenity.id, "name": amenity.name, "category": amenity.category}
        )
    return {
        "property_types": [t.value for t in PropertyType],
        "statuses": [s.value for s in PropertyStatus],
        "states": crud.distinct_values(db, Property.state),
        "cities": crud.distinct_values(db, Property.city, limit=50),
        "amenities": dict(amenities),
        "bedroom_options": BEDROOM_OPTIONS,
        "bathroom_options": BATHROOM_OPTIONS,
    }


def check_new_matches(db: Session, saved: SavedSearch, limit: int = 10,
                      now: Optional[datetime] = None) -> List[Property]:
    """Find properties created since the saved search last notified.

    Delivery itself belongs to the notification service; a match is logged
    and ``last_notified_at`` is stamped.
    """
    since = saved.last_notified_at or saved.created_at
    filters = schemas.SearchFilters.model_validate({**(saved.filters or {}), "created_after": since})
    query = crud.build_search_query(db, filters)
    radius = filters.radius_query()
    if radius is not None:
        ranked = geo.within_radius(query.all(), radius.latitude, radius.longitude, radius.radius)
        matches = [p for p, _ in ranked[:limit]]
    else:
        matches = crud.apply_sort(query).limit(limit).all()
    if matches:
        logger.info(
            "Saved search %s for user %s has %d new properties",
            saved.id, saved.user_id, len(matches),
        )
        saved.last_notified_at = now or datetime.now(timezone.utc)
        db.commit()
    return matches


def check_all_saved_searches(db: Session) -> int:
    """Returns how many saved searches had new matches."""
    searches = db.query(SavedSearch).filter(SavedSearch.email_notifications.is_(True)).all()
    notified = 0
    for saved in searches:
        try:
            matched = check_new_matches(db, saved)
        except ValidationError as e:
            logger.warning("Skipping saved search %s with invalid filters: %s", saved.id, e)
            continue
        if matched:
            notified += 1
    return notified


def detect_price_drops(db: Session) -> List[dict]:
    drops = []
    props = (
        db.query(Property)
        .filter(
            Property.deleted_at.is_(None),
            Property.is_approved.is_(True),
        )
        .all()
    )
    for prop in props:
        history = prop.price_history or []
        if len(history) < 2:
            continue
        previous, latest = history[-2], history[-1]
        if latest["price"] < previous["price"]:
            logger.info(
                "Price drop on property %s: %s -> %s",
                prop.id, previous["price"], latest["price"],
            )
            drops.append({"property_id": prop.id, "old_price": previous["price"], "new_price": latest["price"]})
    return drops
