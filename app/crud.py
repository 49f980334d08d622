# app/crud.py
"""Query builders for `Property` searches.

Each ``filter_by_*`` helper narrows a ``Query`` and returns it; absent
arguments leave the query untouched. ``build_search_query`` composes them
with logical AND from a ``SearchFilters`` record. Data-access errors are not
caught here.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select, func, or_, asc, desc
from sqlalchemy.orm import Query, Session, selectinload

from . import geo
from .models import Amenity, Property, property_amenities
from .schemas import Bounds, SearchFilters, SORTABLE_COLUMNS, DEFAULT_SORT_BY
from .utils import to_money


def base_query(db: Session, include_unapproved: bool = False) -> Query:
    q = (
        db.query(Property)
        .options(
            selectinload(Property.owner),
            selectinload(Property.images),
            selectinload(Property.amenities),
        )
        .filter(Property.deleted_at.is_(None))
    )
    if not include_unapproved:
        q = q.filter(Property.is_approved.is_(True))
    return q


def filter_by_text(q: Query, term: Optional[str]) -> Query:
    if not term:
        return q
    return q.filter(or_(
        Property.title.icontains(term, autoescape=True),
        Property.description.icontains(term, autoescape=True),
        Property.address.icontains(term, autoescape=True),
        Property.city.icontains(term, autoescape=True),
        Property.state.icontains(term, autoescape=True),
    ))


def filter_by_price(q: Query, min_price=None, max_price=None) -> Query:
    if min_price is not None:
        q = q.filter(Property.price >= min_price)
    if max_price is not None:
        q = q.filter(Property.price <= max_price)
    return q


def filter_by_location(q: Query, city=None, state=None, zip_code=None) -> Query:
    if city:
        q = q.filter(Property.city.icontains(city, autoescape=True))
    if state:
        q = q.filter(Property.state == state)
    if zip_code:
        q = q.filter(Property.zip_code == zip_code)
    return q


def filter_by_square_feet(q: Query, minimum=None, maximum=None) -> Query:
    if minimum is not None:
        q = q.filter(Property.square_feet >= minimum)
    if maximum is not None:
        q = q.filter(Property.square_feet <= maximum)
    return q


def filter_by_year_built(q: Query, minimum=None, maximum=None) -> Query:
    if minimum is not None:
        q = q.filter(Property.year_built >= minimum)
    if maximum is not None:
        q = q.filter(Property.year_built <= maximum)
    return q


def filter_by_amenities(q: Query, amenity_ids: Optional[Sequence[int]]) -> Query:
    """Keep properties linked to every id in ``amenity_ids``."""
    if not amenity_ids:
        return q
    ids = sorted(set(amenity_ids))
    link = property_amenities.c
    matching = (
        select(link.property_id)
        .where(link.amenity_id.in_(ids))
        .group_by(link.property_id)
        .having(func.count(func.distinct(link.amenity_id)) >= len(ids))
    )
    return q.filter(Property.id.in_(matching))


def filter_by_bounds(q: Query, bounds: Optional[Bounds]) -> Query:
    if bounds is None:
        return q
    return q.filter(
        Property.latitude.between(bounds.south, bounds.north),
        Property.longitude.between(bounds.west, bounds.east),
    )


def filter_by_radius_box(q: Query, lat: float, lon: float, radius_miles: float) -> Query:
    """Coarse pre-filter for a radius search; exact distance is checked in Python."""
    south, north, west, east = geo.bounding_box(lat, lon, radius_miles)
    q = q.filter(
        Property.latitude.isnot(None),
        Property.longitude.isnot(None),
        Property.latitude.between(south, north),
    )
    if west is not None:
        q = q.filter(Property.longitude.between(west, east))
    return q


def build_search_query(db: Session, filters: SearchFilters, include_unapproved: bool = False) -> Query:
    q = base_query(db, include_unapproved)
    q = filter_by_text(q, filters.search)
    q = filter_by_price(q, filters.min_price, filters.max_price)
    q = filter_by_location(q, filters.city, filters.state, filters.zip_code)
    if filters.property_type:
        q = q.filter(Property.property_type == filters.property_type)
    if filters.status:
        q = q.filter(Property.status == filters.status)
    if filters.bedrooms is not None:
        q = q.filter(Property.bedrooms >= filters.bedrooms)
    if filters.bathrooms is not None:
        q = q.filter(Property.bathrooms >= filters.bathrooms)
    q = filter_by_square_feet(q, filters.min_square_feet, filters.max_square_feet)
    q = filter_by_year_built(q, filters.min_year_built, filters.max_year_built)
    q = filter_by_amenities(q, filters.amenities)
    if filters.featured:
        q = q.filter(Property.is_featured.is_(True))
    q = filter_by_bounds(q, filters.bounds)
    radius = filters.radius_query()
    if radius is not None:
        q = filter_by_radius_box(q, radius.latitude, radius.longitude, radius.radius)
    if filters.created_after is not None:
        q = q.filter(Property.created_at > filters.created_after)
    return q


def apply_sort(q: Query, sort_by: Optional[str] = DEFAULT_SORT_BY, sort_order: Optional[str] = "desc") -> Query:
    if sort_by not in SORTABLE_COLUMNS:
        sort_by, sort_order = DEFAULT_SORT_BY, "desc"
    direction = asc if sort_order == "asc" else desc
    return q.order_by(direction(getattr(Property, sort_by)), direction(Property.id))


def get_property(db: Session, property_id: int) -> Optional[Property]:
    return (
        base_query(db, include_unapproved=True)
        .filter(Property.id == property_id)
        .first()
    )


def nearby_candidates(db: Session, lat: float, lon: float, radius_miles: float,
                      exclude_property_id: Optional[int] = None, property_type=None) -> List[Property]:
    q = filter_by_radius_box(base_query(db), lat, lon, radius_miles)
    if exclude_property_id is not None:
        q = q.filter(Property.id != exclude_property_id)
    if property_type:
        q = q.filter(Property.property_type == property_type)
    return q.all()


def similar_properties(db: Session, prop: Property, price_variance: float = 0.2, limit: int = 6) -> List[Property]:
    price = Decimal(prop.price)
    variance = Decimal(str(price_variance))
    low, high = price * (1 - variance), price * (1 + variance)
    return (
        base_query(db)
        .filter(
            Property.id != prop.id,
            Property.property_type == prop.property_type,
            Property.status == prop.status,
            Property.price.between(low, high),
        )
        .order_by(func.abs(Property.price - price), Property.id)
        .limit(limit)
        .all()
    )


def distinct_values(db: Session, column, term: Optional[str] = None, limit: Optional[int] = None) -> List[str]:
    q = (
        db.query(column)
        .filter(Property.deleted_at.is_(None), Property.is_approved.is_(True))
        .distinct()
        .order_by(column)
    )
    if term:
        q = q.filter(column.icontains(term, autoescape=True))
    if limit:
        q = q.limit(limit)
    return [row[0] for row in q.all()]


def value_counts(db: Session, column, term: str, limit: int) -> List[tuple]:
    """``(value, listings)`` pairs matching ``term``, most listings first."""
    listings = func.count(Property.id).label("listings")
    q = (
        db.query(column, listings)
        .filter(
            Property.deleted_at.is_(None),
            Property.is_approved.is_(True),
            column.icontains(term, autoescape=True),
        )
        .group_by(column)
        .order_by(listings.desc(), column)
        .limit(limit)
    )
    return [(row[0], row[1]) for row in q.all()]


def count_by_type(db: Session, property_type) -> int:
    return (
        db.query(func.count(Property.id))
        .filter(
            Property.deleted_at.is_(None),
            Property.is_approved.is_(True),
            Property.property_type == property_type,
        )
        .scalar()
    )


def list_amenities(db: Session) -> List[Amenity]:
    return db.query(Amenity).order_by(Amenity.category, Amenity.name).all()


def update_price(db: Session, prop: Property, new_price, on: Optional[date] = None) -> Property:
    """Set a new price and append the change to ``price_history``.

    The first change also records the old price as the opening entry.
    """
    on = on or date.today()
    old_price = to_money(prop.price)
    new_price = to_money(new_price)
    history = list(prop.price_history or [])
    if not history:
        opened = prop.created_at.date() if prop.created_at else on
        history.append({"date": opened.isoformat(), "price": float(old_price), "change": 0.0})
    previous = Decimal(str(history[-1]["price"]))
    change = new_price - previous
    change_percent = float(round(change / previous * 100, 2)) if previous > 0 else 0.0
    history.append({
        "date": on.isoformat(),
        "price": float(new_price),
        "change": float(change),
        "change_percent": change_percent,
    })
    prop.price = new_price
    prop.price_history = history
    db.commit()
    db.refresh(prop)
    return prop
