# app/geo.py
"""Great-circle distance helpers for radius and nearby searches.

Distances use the spherical law of cosines with the Earth radius in miles.
The exact distance is evaluated in Python after a coarse bounding-box
pre-filter has been applied in SQL (see ``crud.filter_by_radius_box``).
"""
import math
from typing import Iterable, List, Optional, Tuple

EARTH_RADIUS_MILES = 3959.0

# padding so rows sitting exactly on the box edge survive float round-trips
_BOX_EPSILON_DEG = 1e-6


def distance_miles(lat0: float, lon0: float, lat: float, lon: float) -> float:
    lat0, lon0, lat, lon = float(lat0), float(lon0), float(lat), float(lon)
    if lat0 == lat and lon0 == lon:
        return 0.0
    rlat0, rlat = math.radians(lat0), math.radians(lat)
    cos_angle = (
        math.cos(rlat0) * math.cos(rlat) * math.cos(math.radians(lon) - math.radians(lon0))
        + math.sin(rlat0) * math.sin(rlat)
    )
    # float error can push the argument just outside acos' domain
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return EARTH_RADIUS_MILES * math.acos(cos_angle)


def bounding_box(lat: float, lon: float, radius_miles: float) -> Tuple[float, float, Optional[float], Optional[float]]:
    """Return (south, north, west, east) enclosing the radius circle.

    West/east are ``None`` when the circle touches a pole or crosses the
    antimeridian; callers then skip the longitude constraint.
    """
    angular = radius_miles / EARTH_RADIUS_MILES
    lat_delta = math.degrees(angular) + _BOX_EPSILON_DEG
    south, north = lat - lat_delta, lat + lat_delta
    if south <= -90.0 or north >= 90.0:
        return max(south, -90.0), min(north, 90.0), None, None
    # widest longitude reached by the circle is at the tangent meridian, not on the center's parallel
    x = math.sin(angular) / math.cos(math.radians(lat))
    if angular >= math.pi / 2 or x >= 1.0:
        return south, north, None, None
    lon_delta = math.degrees(math.asin(x)) + _BOX_EPSILON_DEG
    west, east = lon - lon_delta, lon + lon_delta
    if west < -180.0 or east > 180.0:
        return south, north, None, None
    return south, north, west, east


def within_radius(rows: Iterable, lat: float, lon: float, radius_miles: float) -> List[tuple]:
    """Keep rows within ``radius_miles`` of the point, nearest first.

    Rows without coordinates are dropped before any distance is computed.
    Returns ``(row, distance)`` pairs; ties keep ascending id order.
    """
    ranked = []
    for row in rows:
        if row.latitude is None or row.longitude is None:
            continue
        d = distance_miles(lat, lon, row.latitude, row.longitude)
        if d <= radius_miles:
            ranked.append((row, d))
    ranked.sort(key=lambda pair: (pair[1], pair[0].id))
    return ranked
