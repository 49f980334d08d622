# app/schemas.py
"""Pydantic schemas: the typed search filter record and response envelopes."""
import json
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from .models import PropertyType, PropertyStatus

SORTABLE_COLUMNS = ("price", "created_at", "updated_at", "views", "saves", "square_feet")
DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_ORDER = "desc"
DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


class Bounds(BaseModel):
    north: float
    south: float
    east: float
    west: float


class RadiusQuery(BaseModel):
    latitude: float
    longitude: float
    radius: float


class SearchFilters(BaseModel):
    """Every filter is optional; ``None`` means "no constraint".

    Empty strings, empty lists and ``featured=False`` are normalized to
    ``None`` so that they behave exactly like an omitted key, including in
    the cache key.
    """
    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    property_type: Optional[PropertyType] = None
    status: Optional[PropertyStatus] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    min_square_feet: Optional[int] = None
    max_square_feet: Optional[int] = None
    min_year_built: Optional[int] = None
    max_year_built: Optional[int] = None
    amenities: Optional[List[int]] = None
    featured: Optional[bool] = None
    bounds: Optional[Bounds] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius: Optional[float] = Field(None, ge=0)
    created_after: Optional[datetime] = None
    sort_by: Optional[str] = DEFAULT_SORT_BY
    sort_order: Optional[str] = DEFAULT_SORT_ORDER
    page: int = Field(1, ge=1)
    per_page: int = DEFAULT_PER_PAGE

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        if isinstance(v, (list, tuple)) and len(v) == 0:
            return None
        return v

    @field_validator("search", "city", "state", "zip_code")
    @classmethod
    def _strip(cls, v):
        return v.strip() if v is not None else v

    @field_validator("amenities", mode="before")
    @classmethod
    def _split_amenities(cls, v):
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        elif isinstance(v, (list, tuple)):
            parts = []
            for item in v:
                if isinstance(item, str):
                    parts.extend(p for p in item.split(",") if p.strip())
                else:
                    parts.append(item)
            v = parts
        return v or None

    @field_validator("amenities")
    @classmethod
    def _dedupe_amenities(cls, v):
        return sorted(set(v)) if v else None

    @field_validator("bounds", mode="before")
    @classmethod
    def _parse_bounds(cls, v):
        if isinstance(v, str) and v.strip():
            return json.loads(v)
        return v

    @field_validator("featured")
    @classmethod
    def _featured_false_is_absent(cls, v):
        return True if v else None

    @field_validator("per_page", mode="before")
    @classmethod
    def _clamp_per_page(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_PER_PAGE
        return max(1, min(int(v), MAX_PER_PAGE))

    @model_validator(mode="after")
    def _normalize_sort(self):
        order = (self.sort_order or DEFAULT_SORT_ORDER).lower()
        self.sort_order = order if order in ("asc", "desc") else DEFAULT_SORT_ORDER
        if self.sort_by is None:
            self.sort_by = DEFAULT_SORT_BY
        elif self.sort_by not in SORTABLE_COLUMNS:
            self.sort_by = DEFAULT_SORT_BY
            self.sort_order = DEFAULT_SORT_ORDER
        return self

    def radius_query(self) -> Optional[RadiusQuery]:
        """All three of latitude, longitude and radius, or nothing."""
        if self.latitude is None or self.longitude is None or self.radius is None:
            return None
        return RadiusQuery(latitude=self.latitude, longitude=self.longitude, radius=self.radius)

    def normalized(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class AmenityOut(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    icon: Optional[str] = None
    class Config:
        from_attributes = True


class OwnerOut(BaseModel):
    id: int
    name: str
    class Config:
        from_attributes = True


class PropertySummary(BaseModel):
    id: int
    title: str
    price: Decimal
    property_type: PropertyType
    status: PropertyStatus
    address: str
    city: str
    state: str
    zip_code: str
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[int] = None
    is_featured: bool = False
    views: int = 0
    saves: int = 0
    primary_image: Optional[str] = None
    amenities: List[AmenityOut] = []
    owner: Optional[OwnerOut] = None
    created_at: Optional[datetime] = None
    distance: Optional[float] = None
    class Config:
        from_attributes = True


class SearchPage(BaseModel):
    data: List[PropertySummary]
    current_page: int
    per_page: int
    total: int
    last_page: int


class Suggestion(BaseModel):
    type: str
    value: str
    label: str
    count: Optional[int] = None


class SuggestionList(BaseModel):
    suggestions: List[Suggestion]


class PriceHistoryEntry(BaseModel):
    date: str
    price: float
    change: float
    change_percent: Optional[float] = None
