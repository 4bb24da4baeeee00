"""Great-circle distances over recorded routes.

Anything exposing ``lat`` and ``lng`` attributes works as a coordinate.
All functions are pure and recompute from scratch on every call.
"""

from __future__ import annotations

import math
from typing import Protocol, Sequence

from app.core.constants import EARTH_RADIUS_KM


class Coord(Protocol):
    lat: float
    lng: float


def pair_distance_km(a: Coord, b: Coord) -> float:
    """Return haversine distance in kilometers between two WGS84 points."""
    if a.lat == b.lat and a.lng == b.lng:
        return 0.0

    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def path_distance_km(points: Sequence[Coord]) -> float:
    """Sum of pair distances over consecutive points (0 for fewer than two)."""
    total = 0.0
    for i in range(1, len(points)):
        total += pair_distance_km(points[i - 1], points[i])
    return total


def route_bounds(points: Sequence[Coord]) -> dict | None:
    """Bounding box of a route as {minLat, minLng, maxLat, maxLng}."""
    if not points:
        return None
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return {
        "minLat": min(lats),
        "minLng": min(lngs),
        "maxLat": max(lats),
        "maxLng": max(lngs),
    }


def route_geojson(points: Sequence[Coord]) -> dict:
    """GeoJSON LineString; GeoJSON orders coordinates as [lng, lat]."""
    return {
        "type": "LineString",
        "coordinates": [[p.lng, p.lat] for p in points],
    }
