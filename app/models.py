# app/models.py
"""SQLAlchemy ORM models for persisted entities.

``Property`` is the only entity the search layer reads; users, images and
amenities are loaded alongside it for rendering. ``SavedSearch`` holds a filter
map that the notifier re-evaluates periodically.
"""
import enum
from sqlalchemy import (
    Boolean, Column, Enum, ForeignKey, Index, Integer, JSON, Numeric, String, Table, Text,
    TIMESTAMP, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from .db import Base


class PropertyType(str, enum.Enum):
    HOUSE = "house"
    APARTMENT = "apartment"
    CONDO = "condo"
    LAND = "land"
    COMMERCIAL = "commercial"


class PropertyStatus(str, enum.Enum):
    FOR_SALE = "for_sale"
    FOR_RENT = "for_rent"
    SOLD = "sold"
    PENDING = "pending"


def _enum_column(enum_cls, name):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
    )


JsonType = JSON().with_variant(JSONB(), "postgresql")

property_amenities = Table(
    "property_amenities",
    Base.metadata,
    Column("id", Integer, primary_key=True),
    Column("property_id", Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("amenity_id", Integer, ForeignKey("amenities.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("property_id", "amenity_id", name="uq_property_amenity"),
)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)

    properties = relationship("Property", back_populates="owner")


class Amenity(Base):
    __tablename__ = "amenities"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    category = Column(Text)
    icon = Column(Text)


class Property(Base):
    __tablename__ = "properties"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    property_type = Column(_enum_column(PropertyType, "property_type"), nullable=False, index=True)
    status = Column(
        _enum_column(PropertyStatus, "property_status"),
        nullable=False,
        default=PropertyStatus.FOR_SALE,
        index=True,
    )
    price = Column(Numeric(15, 2), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    city = Column(String(255), nullable=False, index=True)
    state = Column(String(255), nullable=False)
    zip_code = Column(String(32), nullable=False)
    country = Column(String(64), nullable=False, default="USA")
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))
    bedrooms = Column(Integer)
    bathrooms = Column(Integer)
    square_feet = Column(Integer)
    year_built = Column(Integer)
    lot_size = Column(Integer)
    is_featured = Column(Boolean, nullable=False, default=False, index=True)
    is_approved = Column(Boolean, nullable=False, default=False, index=True)
    views = Column(Integer, nullable=False, default=0)
    saves = Column(Integer, nullable=False, default=0)
    price_history = Column(JsonType)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(TIMESTAMP(timezone=True))

    owner = relationship("User", back_populates="properties")
    images = relationship(
        "PropertyImage",
        back_populates="property",
        order_by="PropertyImage.order",
        cascade="all, delete-orphan",
    )
    amenities = relationship("Amenity", secondary=property_amenities)

    @property
    def primary_image(self):
        """Path of the primary image, else the first image by order."""
        if not self.images:
            return None
        for image in self.images:
            if image.is_primary:
                return image.path
        return self.images[0].path


class PropertyImage(Base):
    __tablename__ = "property_images"
    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    path = Column(Text, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)

    property = relationship("Property", back_populates="images")


class SavedSearch(Base):
    __tablename__ = "saved_searches"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    filters = Column(JsonType, nullable=False, default=dict)
    email_notifications = Column(Boolean, nullable=False, default=True)
    last_notified_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User")

Index("idx_properties_lat_lng", Property.latitude, Property.longitude)
