# tests/test_geo.py
import math
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app import geo


def test_distance_same_point_is_zero():
    assert geo.distance_miles(30.2672, -97.7431, 30.2672, -97.7431) == 0.0


def test_distance_same_point_from_decimal_columns():
    d = geo.distance_miles(30.2672, -97.7431, Decimal("30.26720000"), Decimal("-97.74310000"))
    assert d == 0.0
    assert not math.isnan(d)


def test_distance_near_identical_points_does_not_raise():
    d = geo.distance_miles(45.0, 45.0, 45.0 + 1e-12, 45.0)
    assert d >= 0.0
    assert not math.isnan(d)


def test_distance_austin_to_dallas():
    d = geo.distance_miles(30.2672, -97.7431, 32.7767, -96.7970)
    assert d == pytest.approx(182, abs=3)


def test_distance_one_degree_of_latitude():
    assert geo.distance_miles(0, 0, 1, 0) == pytest.approx(3959 * math.pi / 180, rel=1e-9)


def test_bounding_box_contains_radius():
    south, north, west, east = geo.bounding_box(30.0, -97.0, 10)
    assert south < 30.0 < north
    assert west < -97.0 < east
    # a point 10 miles due north sits inside the box
    assert north - 30.0 >= 10 / (3959 * math.pi / 180)


def test_bounding_box_near_pole_drops_longitude():
    south, north, west, east = geo.bounding_box(89.99, 10.0, 50)
    assert north == 90.0
    assert west is None and east is None


def test_bounding_box_across_antimeridian_drops_longitude():
    _, _, west, east = geo.bounding_box(0.0, 179.99, 50)
    assert west is None and east is None


def test_within_radius_filters_and_orders():
    rows = [
        SimpleNamespace(id=1, latitude=30.5, longitude=-97.7),
        SimpleNamespace(id=2, latitude=30.2672, longitude=-97.7431),
        SimpleNamespace(id=3, latitude=None, longitude=None),
        SimpleNamespace(id=4, latitude=40.0, longitude=-74.0),
    ]
    ranked = geo.within_radius(rows, 30.2672, -97.7431, 25)
    assert [row.id for row, _ in ranked] == [2, 1]
    assert ranked[0][1] == 0.0


def test_within_radius_zero_keeps_exact_point():
    rows = [SimpleNamespace(id=7, latitude=12.5, longitude=77.25)]
    assert [r.id for r, _ in geo.within_radius(rows, 12.5, 77.25, 0)] == [7]


def _tangent_point(lat, radius_miles, shrink=0.995):
    """Point at the circle's widest longitude, pulled slightly toward the center."""
    a = radius_miles / geo.EARTH_RADIUS_MILES
    tangent_lat = math.degrees(math.asin(math.sin(math.radians(lat)) / math.cos(a)))
    tangent_lon = math.degrees(math.asin(math.sin(a) / math.cos(math.radians(lat))))
    return tangent_lat, tangent_lon * shrink


@pytest.mark.parametrize("lat,radius", [(80.0, 500), (61.0, 100), (30.0, 25)])
def test_bounding_box_covers_tangent_longitude(lat, radius):
    point_lat, point_lon = _tangent_point(lat, radius)
    assert geo.distance_miles(lat, 0.0, point_lat, point_lon) <= radius
    south, north, west, east = geo.bounding_box(lat, 0.0, radius)
    assert south <= point_lat <= north
    assert west <= -point_lon and point_lon <= east


def test_bounding_box_wide_circle_drops_longitude():
    # circle reaching over the pole covers every longitude
    _, _, west, east = geo.bounding_box(60.0, 0.0, 2500)
    assert west is None and east is None
