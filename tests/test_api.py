# tests/test_api.py
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.main import app
from app.cache import get_cache
from app.db import get_db
from app import services


@pytest.fixture
def client(db, cache):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_search_envelope(client, make_property):
    prop = make_property(title="Lake House", price=Decimal("300000"))
    res = client.get("/search", params={"search": "lake", "min_price": "250000", "city": ""})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 1
    assert body["current_page"] == 1
    assert body["per_page"] == 15
    assert body["last_page"] == 1
    row = body["data"][0]
    assert row["id"] == prop.id
    assert row["owner"]["name"] == "Agent Smith"
    assert row["primary_image"] is None


def test_search_amenities_comma_and_repeated(client, db, make_property, amenities):
    prop = make_property()
    prop.amenities = [amenities["pool"], amenities["garage"]]
    db.commit()
    pool, garage, gym = (amenities[n].id for n in ("pool", "garage", "gym"))

    comma = client.get("/search", params={"amenities": f"{pool},{garage}"}).json()
    repeated = client.get("/search", params=[("amenities", pool), ("amenities", garage)]).json()
    with_gym = client.get("/search", params={"amenities": f"{pool},{gym}"}).json()
    assert [r["id"] for r in comma["data"]] == [prop.id]
    assert [r["id"] for r in repeated["data"]] == [prop.id]
    assert with_gym["total"] == 0


def test_search_rejects_bad_enum(client):
    res = client.get("/search", params={"property_type": "castle"})
    assert res.status_code == 422


def test_search_bounds_requires_rectangle(client, make_property):
    inside = make_property(latitude=Decimal("30.3"), longitude=Decimal("-97.7"))
    assert client.get("/search/bounds", params={"north": 31}).status_code == 422
    res = client.get("/search/bounds", params={"north": 31, "south": 30, "east": -97, "west": -98})
    assert res.status_code == 200
    assert [r["id"] for r in res.json()["data"]] == [inside.id]


def test_search_store_failure_is_generic_500(client, monkeypatch):
    def fail(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("db down"))

    monkeypatch.setattr(services, "execute_search", fail)
    res = client.get("/search")
    assert res.status_code == 500
    assert res.json() == {"detail": "Search failed"}


def test_suggestions_endpoint(client, make_property):
    make_property(city="Austin")
    assert client.get("/search/suggestions", params={"q": "a"}).json() == {"suggestions": []}
    body = client.get("/search/suggestions", params={"q": "aus"}).json()
    assert body["suggestions"][0] == {"type": "city", "value": "Austin", "label": "Austin", "count": 1}


def test_filter_options_endpoint(client, make_property):
    make_property()
    body = client.get("/search/filter-options").json()
    assert body["bedroom_options"] == [1, 2, 3, 4, 5, 6]
    assert body["states"] == ["TX"]


def test_nearby_and_similar(client, make_property):
    me = make_property(latitude=Decimal("30.2672"), longitude=Decimal("-97.7431"), price=Decimal("500000"))
    other = make_property(latitude=Decimal("30.28"), longitude=Decimal("-97.75"), price=Decimal("550000"))
    nearby = client.get(f"/properties/{me.id}/nearby").json()
    assert [r["id"] for r in nearby] == [other.id]
    similar = client.get(f"/properties/{me.id}/similar").json()
    assert [r["id"] for r in similar] == [other.id]


def test_nearby_without_coordinates_is_empty(client, make_property):
    prop = make_property()
    assert client.get(f"/properties/{prop.id}/nearby").json() == []


def test_missing_property_is_404(client):
    assert client.get("/properties/999/similar").status_code == 404


def test_saved_search_check_endpoint(client):
    assert client.post("/saved-searches/check").json() == {"status": "ok", "notified": 0}
