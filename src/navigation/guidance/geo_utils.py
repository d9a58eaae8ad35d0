# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects; only depends on models for the Coord type.

import math
from typing import Iterable, Sequence

import numpy as np

from .models import Coord


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a just past 1 for antipodal points
    a = min(a, 1.0)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_many(origin: Coord, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """
    Vectorised haversine from one origin to many points.

    Args:
        origin: Reference coordinate.
        lats, lons: Arrays of decimal degrees, same length.

    Returns:
        Array of distances in metres, aligned with the inputs.
    """
    d_lat = np.radians(lats - origin.lat)
    d_lon = np.radians(lons - origin.lon)
    a = (
        np.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat))
        * np.cos(np.radians(lats))
        * np.sin(d_lon / 2) ** 2
    )
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Identical points have no direction; 0.0 is returned for them.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    bearing = (math.degrees(math.atan2(y, x)) + 360) % 360
    # -0.0 + 360 can round up to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def distance_m(a: Coord, b: Coord) -> float:
    """Coord wrapper around haversine_distance()."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def bearing_deg(a: Coord, b: Coord) -> float:
    """Coord wrapper around calculate_bearing()."""
    return calculate_bearing(a.lat, a.lon, b.lat, b.lon)


def path_length_m(start: Coord, points: Iterable[Coord]) -> float:
    """Length of the polyline start -> points[0] -> ... -> points[-1] in metres."""
    total = 0.0
    previous = start
    for point in points:
        total += distance_m(previous, point)
        previous = point
    return total


def coords_to_arrays(points: Sequence[Coord]):
    """Split a coordinate sequence into (lats, lons) float arrays."""
    lats = np.fromiter((p.lat for p in points), dtype=float, count=len(points))
    lons = np.fromiter((p.lon for p in points), dtype=float, count=len(points))
    return lats, lons
