"""Great-circle geometry helpers operating on :class:`GeoPoint` values.

Pure functions with no side effects. Everything else in the package builds
on these, so they carry no knowledge of sessions, routes or GPS timing.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .models import GeoPoint

EARTH_RADIUS_KM = 6371.0

DegreeArray = NDArray[np.float64]


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points in kilometres."""

    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    h = math.sin(d_lat / 2) ** 2 + math.sin(d_lon / 2) ** 2 * math.cos(lat1) * math.cos(
        lat2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    return distance_km(a, b) * 1000.0


def path_length_km(points: Sequence[GeoPoint]) -> float:
    """Sum of consecutive haversine distances; 0 for fewer than two points."""

    total = 0.0
    for previous, current in zip(points, points[1:]):
        total += distance_km(previous, current)
    return total


def bearing_degrees(a: GeoPoint, b: GeoPoint) -> float:
    """Initial compass bearing from ``a`` to ``b`` in [0, 360).

    Returns 0 when both points coincide.
    """

    if a == b:
        return 0.0
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    y = math.sin(d_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(
        d_lon
    )
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round up to 360.0
    return 0.0 if bearing >= 360.0 else bearing


def normalize_angle(degrees: float) -> float:
    """Map an angle difference into the half-open range (-180, 180]."""

    wrapped = math.fmod(degrees, 360.0)
    if wrapped > 180.0:
        wrapped -= 360.0
    elif wrapped <= -180.0:
        wrapped += 360.0
    return wrapped


def distances_km(point: GeoPoint, candidates: Sequence[GeoPoint]) -> DegreeArray:
    """Vectorised haversine distance from ``point`` to each candidate."""

    if not candidates:
        return np.zeros(0, dtype=float)
    coords = np.radians(
        np.asarray([(c.latitude, c.longitude) for c in candidates], dtype=float)
    )
    lat1 = math.radians(point.latitude)
    lon1 = math.radians(point.longitude)
    d_lat = coords[:, 0] - lat1
    d_lon = coords[:, 1] - lon1
    h = np.sin(d_lat / 2) ** 2 + np.sin(d_lon / 2) ** 2 * math.cos(lat1) * np.cos(
        coords[:, 0]
    )
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def nearest_point_index(point: GeoPoint, candidates: Sequence[GeoPoint]) -> int:
    """Index of the closest candidate; ties resolve to the lowest index.

    Returns 0 for an empty candidate list; callers guard against that case.
    """

    if not candidates:
        return 0
    # argmin returns the first occurrence of the minimum.
    return int(np.argmin(distances_km(point, candidates)))


def snap_to_nearest(point: GeoPoint, route: Sequence[GeoPoint]) -> GeoPoint:
    """Return the route point closest to ``point``."""

    return route[nearest_point_index(point, route)]


__all__ = [
    "EARTH_RADIUS_KM",
    "bearing_degrees",
    "distance_km",
    "distance_m",
    "distances_km",
    "nearest_point_index",
    "normalize_angle",
    "path_length_km",
    "snap_to_nearest",
]
