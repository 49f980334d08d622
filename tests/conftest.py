# tests/conftest.py
import os

os.environ["POSTGRES_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "0"
os.environ.pop("REDIS_URL", None)

from datetime import datetime
from decimal import Decimal

import pytest

from app import models
from app.cache import InMemoryCache
from app.db import Base, engine, SessionLocal


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock=clock)


@pytest.fixture
def owner(db):
    user = models.User(name="Agent Smith", email="agent@example.com")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def amenities(db):
    rows = {
        name: models.Amenity(name=name, category=category)
        for name, category in [("pool", "outdoor"), ("garage", "parking"), ("gym", "indoor")]
    }
    db.add_all(rows.values())
    db.commit()
    return rows


@pytest.fixture
def make_property(db, owner):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = dict(
            owner=owner,
            title=f"Listing {n}",
            description="A nice place",
            property_type=models.PropertyType.HOUSE,
            status=models.PropertyStatus.FOR_SALE,
            price=Decimal("300000"),
            address=f"{n} Main St",
            city="Austin",
            state="TX",
            zip_code="78701",
            is_approved=True,
            created_at=datetime(2026, 1, 1, 12, 0, n),
        )
        data.update(overrides)
        prop = models.Property(**data)
        db.add(prop)
        db.commit()
        db.refresh(prop)
        return prop

    return _make
