"""
Spherical geodesy helpers.

This module implements:
- Haversine great-circle distance
- Destination point from a start, distance and initial bearing
- Arithmetic-mean center point
- Distance to score transform
- Spherical polygon area for region weighting
"""

import math
from typing import Dict, Iterable, Mapping, Sequence

import numpy as np

from .types import Coordinate

# Mean earth radius used by the distance and scoring code
HAVERSINE_RADIUS_KM = 6371.071
# Mean earth radius used for bearing jumps
DESTINATION_RADIUS_KM = 6371.0088
# Equatorial radius used for polygon areas
AREA_RADIUS_M = 6378137.0

MAX_SCORE = 100.0
PERFECT_SCORE_DISTANCE_KM = 0.5


def haversine_distance_km(p1: Coordinate, p2: Coordinate) -> float:
    """Great-circle distance between two points in kilometers."""
    rlat1 = math.radians(p1.lat)
    rlat2 = math.radians(p2.lat)
    diff_lat = rlat2 - rlat1
    diff_lng = math.radians(p2.lng - p1.lng)

    h = (
        math.sin(diff_lat / 2) ** 2
        + math.cos(rlat1) * math.cos(rlat2) * math.sin(diff_lng / 2) ** 2
    )
    return 2 * HAVERSINE_RADIUS_KM * math.asin(math.sqrt(h))


def _normalize_lng(lng: float) -> float:
    if -180.0 <= lng <= 180.0:
        return lng
    return (lng + 540.0) % 360.0 - 180.0


def destination_point(origin: Coordinate, distance_km: float, bearing_deg: float) -> Coordinate:
    """
    Point reached by travelling ``distance_km`` from ``origin``.

    Args:
        origin: Starting point
        distance_km: Distance along the great circle in kilometers
        bearing_deg: Initial compass bearing (0 north, 90 east, negative west)

    Returns:
        Destination coordinate with longitude wrapped into [-180, 180]
    """
    if distance_km == 0:
        return origin

    lat1 = math.radians(origin.lat)
    lng1 = math.radians(origin.lng)
    bearing = math.radians(bearing_deg)
    delta = distance_km / DESTINATION_RADIUS_KM

    # Rounding can push the sine just past 1 near the poles
    sin_lat2 = math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(bearing)
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    lat = max(-90.0, min(90.0, math.degrees(lat2)))
    return Coordinate(lat=lat, lng=_normalize_lng(math.degrees(lng2)))


def center_point(points: Sequence[Coordinate]) -> Coordinate:
    """
    Arithmetic mean of the given points.

    Only an approximate center, good enough for framing a map view.
    """
    if len(points) == 0:
        raise ValueError("center_point requires at least one point")

    lats = np.fromiter((p.lat for p in points), dtype=float, count=len(points))
    lngs = np.fromiter((p.lng for p in points), dtype=float, count=len(points))
    return Coordinate(lat=float(lats.mean()), lng=float(lngs.mean()))


def score_from_distance_km(distance_km: float) -> float:
    """Score in [0, 100] for a guess ``distance_km`` away from the answer."""
    if distance_km < PERFECT_SCORE_DISTANCE_KM:
        return MAX_SCORE
    return max(0.0, MAX_SCORE - math.sqrt(distance_km))


def score(distances_by_player: Mapping[str, float]) -> Dict[str, float]:
    """Score every player's guess distance independently."""
    return {
        player: score_from_distance_km(distance)
        for player, distance in distances_by_player.items()
    }


def ring_area_m2(ring: Sequence[Sequence[float]]) -> float:
    """
    Signed spherical area of a closed (lng, lat) ring in square meters.

    Uses the Chamberlain-Duquette approximation on a sphere of radius
    ``AREA_RADIUS_M``.
    """
    coords = np.radians(np.asarray(ring, dtype=float)[:, :2])
    if len(coords) < 3:
        return 0.0

    lower = coords
    middle = np.roll(coords, -1, axis=0)
    upper = np.roll(coords, -2, axis=0)
    total = np.sum((upper[:, 0] - lower[:, 0]) * np.sin(middle[:, 1]))
    return float(total * AREA_RADIUS_M * AREA_RADIUS_M / 2.0)


def polygon_area_m2(rings: Iterable[Sequence[Sequence[float]]]) -> float:
    """Area of a polygon given as its outer ring followed by its holes."""
    area = 0.0
    for i, ring in enumerate(rings):
        ring_area = abs(ring_area_m2(ring))
        area += ring_area if i == 0 else -ring_area
    return max(0.0, area)


def random_global_point(rng: np.random.Generator) -> Coordinate:
    """Uniform draw over the lng/lat rectangle of the whole globe."""
    return Coordinate(
        lat=float(rng.uniform(-90.0, 90.0)),
        lng=float(rng.uniform(-180.0, 180.0)),
    )
