"""Dataclasses shared by tracking, navigation and the service clients."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

LatLon = Tuple[float, float]


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Immutable latitude/longitude pair in degrees."""

    latitude: float
    longitude: float

    def as_tuple(self) -> LatLon:
        return (self.latitude, self.longitude)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeoPoint":
        """Build a point from ``latitude/longitude``, ``lat/lng`` or ``lat/lon`` keys."""

        if "latitude" in data:
            return cls(float(data["latitude"]), float(data["longitude"]))
        lon = data.get("lng", data.get("lon"))
        if "lat" not in data or lon is None:
            raise ValueError(f"Unrecognised coordinate payload: {data!r}")
        return cls(float(data["lat"]), float(lon))


Route = Tuple[GeoPoint, ...]


def as_route(points: Sequence[GeoPoint]) -> Route:
    return tuple(points)


@dataclass(frozen=True, slots=True)
class LocationFix:
    """One GPS sample as delivered by the location provider."""

    latitude: float
    longitude: float
    timestamp: float = field(default_factory=time.time)

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


class TrackingStatus(Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class TrackingSnapshot:
    """Read-only copy of the tracking state handed to observers."""

    status: TrackingStatus
    distance_km: float
    duration_sec: int
    average_pace_min_per_km: float
    calories: float
    start_weight_kg: float
    target_pace_min_per_km: Optional[float] = None
    target_distance_km: Optional[float] = None


@dataclass(slots=True)
class TrackingState:
    status: TrackingStatus = TrackingStatus.IDLE
    distance_km: float = 0.0
    duration_sec: int = 0
    average_pace_min_per_km: float = 0.0
    calories: float = 0.0
    start_weight_kg: float = 70.0
    target_pace_min_per_km: Optional[float] = None
    target_distance_km: Optional[float] = None

    def snapshot(self) -> TrackingSnapshot:
        return TrackingSnapshot(
            status=self.status,
            distance_km=self.distance_km,
            duration_sec=self.duration_sec,
            average_pace_min_per_km=self.average_pace_min_per_km,
            calories=self.calories,
            start_weight_kg=self.start_weight_kg,
            target_pace_min_per_km=self.target_pace_min_per_km,
            target_distance_km=self.target_distance_km,
        )


@dataclass(slots=True)
class WaypointCursor:
    """Progress along a target route; never moves backwards."""

    last_matched_index: int = 0

    def advance_to(self, index: int) -> int:
        if index > self.last_matched_index:
            self.last_matched_index = index
        return self.last_matched_index

    def reset(self) -> None:
        self.last_matched_index = 0


class AnnouncementCategory(Enum):
    NAVIGATION = "navigation"
    PACE_COACHING = "pace_coaching"
    MILESTONE = "milestone"


@dataclass(frozen=True, slots=True)
class Announcement:
    category: AnnouncementCategory
    text: str
    created_at: float = field(default_factory=time.time)


@dataclass
class WorkoutRecord:
    user_id: Optional[str]
    name: str
    distance_km: float
    duration_sec: int
    calories: float
    pace_min_per_km: float
    path: List[GeoPoint] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Row layout of the ``workouts`` table."""

        return {
            "user_id": self.user_id,
            "name": self.name,
            "distance": self.distance_km,
            "duration": self.duration_sec,
            "calories": self.calories,
            "pace": self.pace_min_per_km,
            "path": [
                {"latitude": p.latitude, "longitude": p.longitude} for p in self.path
            ],
        }


@dataclass
class RouteEntry:
    id: Optional[str]
    name: str
    distance_km: float
    coordinates: Route
    created_at: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RouteEntry":
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            distance_km=float(row.get("distance") or 0.0),
            coordinates=_flatten_coordinates(row.get("coordinates") or []),
            created_at=row.get("created_at"),
            user_id=row.get("user_id"),
        )


def _flatten_coordinates(raw: Sequence[Any]) -> Route:
    # Saved routes store one coordinate list per drawn leg.
    points: List[GeoPoint] = []
    for item in raw:
        if isinstance(item, Mapping):
            points.append(GeoPoint.from_mapping(item))
        elif isinstance(item, (list, tuple)):
            for nested in _flatten_coordinates(item):
                if points and points[-1] == nested:
                    continue
                points.append(nested)
    return tuple(points)


__all__ = [
    "Announcement",
    "AnnouncementCategory",
    "GeoPoint",
    "LatLon",
    "LocationFix",
    "Route",
    "RouteEntry",
    "TrackingSnapshot",
    "TrackingState",
    "TrackingStatus",
    "WaypointCursor",
    "WorkoutRecord",
    "as_route",
]
