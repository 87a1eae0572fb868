"""Match a runner's live position against a pre-defined target route.

The search for the runner's position is local and monotonic: only a small
window around the current cursor is inspected, so GPS jitter cannot move the
cursor backwards and a self-intersecting route cannot make it jump ahead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..config import (
    MIN_WAYPOINT_SEPARATION_M,
    ROUTE_SEARCH_AHEAD,
    ROUTE_SEARCH_BACK,
    SNAP_MAX_OFFSET_M,
    TURN_MAX_DISTANCE_M,
    TURN_MIN_ANGLE_DEG,
    TURN_MIN_DISTANCE_M,
)
from ..geomath import (
    bearing_degrees,
    distance_m,
    distances_km,
    nearest_point_index,
    normalize_angle,
)
from ..models import GeoPoint, Route, WaypointCursor, as_route

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class MatcherConfig:
    """Thresholds used while following a route."""

    search_back: int = ROUTE_SEARCH_BACK
    search_ahead: int = ROUTE_SEARCH_AHEAD
    min_separation_m: float = MIN_WAYPOINT_SEPARATION_M
    turn_min_angle_deg: float = TURN_MIN_ANGLE_DEG
    turn_min_distance_m: float = TURN_MIN_DISTANCE_M
    turn_max_distance_m: float = TURN_MAX_DISTANCE_M
    snap_max_offset_m: float = SNAP_MAX_OFFSET_M


@dataclass(frozen=True, slots=True)
class WaypointMatch:
    """Next waypoint ahead of the runner.

    ``next_point`` is None when no route point beyond the matched one is far
    enough away (end of route, or matching disabled).
    """

    next_point: Optional[GeoPoint]
    next_index: int
    distance_m: float
    offset_m: float = 0.0


@dataclass(frozen=True, slots=True)
class TurnPoint:
    index: int
    angle_degrees: float
    point: GeoPoint


@dataclass(frozen=True, slots=True)
class TurnGuidance:
    turn: TurnPoint
    distance_m: float
    instruction: str


def advance(
    current: GeoPoint,
    route: Sequence[GeoPoint],
    cursor: WaypointCursor,
    *,
    config: Optional[MatcherConfig] = None,
) -> WaypointMatch:
    """Locate the runner near the cursor and return the next waypoint.

    The closest route point is searched in ``[cursor - search_back, cursor +
    search_ahead]`` (clamped to the route). From there the route is scanned
    forward for the first point at least ``min_separation_m`` away. The
    cursor moves to the matched index and never decreases.
    """

    cfg = config or MatcherConfig()
    if len(route) < 2:
        return WaypointMatch(None, cursor.last_matched_index, 0.0)

    last = min(cursor.last_matched_index, len(route) - 1)
    start = max(0, last - cfg.search_back)
    end = min(len(route) - 1, last + cfg.search_ahead)
    window_m = distances_km(current, route[start : end + 1]) * 1000.0
    local = int(np.argmin(window_m))
    closest = start + local
    offset = float(window_m[local])
    matched = cursor.advance_to(closest)

    for index in range(matched + 1, len(route)):
        separation = distance_m(current, route[index])
        if separation >= cfg.min_separation_m:
            return WaypointMatch(route[index], index, separation, offset)
    return WaypointMatch(None, matched, 0.0, offset)


def detect_turns(
    route: Sequence[GeoPoint], min_angle_degrees: float = TURN_MIN_ANGLE_DEG
) -> List[TurnPoint]:
    """Return interior route points where the bearing changes sharply.

    Positive angles turn right (clockwise). Zero-length legs have no bearing
    and are skipped.
    """

    turns: List[TurnPoint] = []
    for index in range(1, len(route) - 1):
        previous, here, following = route[index - 1], route[index], route[index + 1]
        if previous == here or here == following:
            continue
        angle = normalize_angle(
            bearing_degrees(here, following) - bearing_degrees(previous, here)
        )
        if abs(angle) > min_angle_degrees:
            turns.append(TurnPoint(index=index, angle_degrees=angle, point=here))
    return turns


def instruction_for_turn(angle_degrees: float) -> str:
    """Spoken instruction for a bearing change (positive = right)."""

    magnitude = abs(angle_degrees)
    side = "right" if angle_degrees > 0 else "left"
    if magnitude >= 150:
        return "Make a U-turn"
    if magnitude >= 90:
        return f"Turn sharp {side}"
    if magnitude >= 45:
        return f"Turn {side}"
    return f"Bear {side}"


def next_turn(
    current: GeoPoint,
    route: Sequence[GeoPoint],
    last_processed_index: int,
    *,
    turns: Optional[Sequence[TurnPoint]] = None,
    config: Optional[MatcherConfig] = None,
) -> Optional[TurnGuidance]:
    """First unprocessed turn within the reporting distance band."""

    cfg = config or MatcherConfig()
    if len(route) < 2:
        return None
    candidates = (
        turns if turns is not None else detect_turns(route, cfg.turn_min_angle_deg)
    )
    for turn in candidates:
        if turn.index <= last_processed_index:
            continue
        separation = distance_m(current, turn.point)
        if cfg.turn_min_distance_m <= separation <= cfg.turn_max_distance_m:
            return TurnGuidance(
                turn=turn,
                distance_m=separation,
                instruction=instruction_for_turn(turn.angle_degrees),
            )
    return None


def snap_position(current: GeoPoint, route: Sequence[GeoPoint]) -> GeoPoint:
    """Nearest route point, or ``current`` unchanged when matching is disabled."""

    if len(route) < 2:
        return current
    return route[nearest_point_index(current, route)]


class RouteMatcher:
    """Stateful wrapper following one target route during a session.

    Usage:
        matcher = RouteMatcher(route)

        # On every fix:
        position = matcher.snap(fix.point)
        match = matcher.advance(position)
        guidance = matcher.upcoming_turn(position)
    """

    def __init__(
        self,
        route: Sequence[GeoPoint] = (),
        config: Optional[MatcherConfig] = None,
    ) -> None:
        self.config = config or MatcherConfig()
        self._route: Route = ()
        self._turns: List[TurnPoint] = []
        self._cursor = WaypointCursor()
        self._last_turn_index = 0
        self._off_route = False
        self.set_route(route)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_route(self, route: Sequence[GeoPoint]) -> None:
        """Replace the target route and reset progress."""

        self._route = as_route(route)
        self._turns = (
            detect_turns(self._route, self.config.turn_min_angle_deg)
            if self.enabled
            else []
        )
        self.reset()
        if self._route and not self.enabled:
            LOGGER.info("Route has fewer than 2 points; matching disabled")
        elif self.enabled:
            LOGGER.debug(
                "Route loaded: %d points, %d turns", len(self._route), len(self._turns)
            )

    def reset(self) -> None:
        self._cursor.reset()
        self._last_turn_index = 0
        self._off_route = False

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def route(self) -> Route:
        return self._route

    @property
    def enabled(self) -> bool:
        return len(self._route) >= 2

    @property
    def cursor(self) -> WaypointCursor:
        return self._cursor

    @property
    def turns(self) -> List[TurnPoint]:
        return list(self._turns)

    @property
    def off_route(self) -> bool:
        return self._off_route

    # ------------------------------------------------------------------
    # Per-fix operations
    # ------------------------------------------------------------------

    def snap(self, position: GeoPoint) -> GeoPoint:
        """Snap a fix onto the route unless the runner has left it."""

        if not self.enabled:
            return position
        nearest = self._route[nearest_point_index(position, self._route)]
        self._update_off_route(distance_m(position, nearest))
        if self._off_route:
            return position
        return nearest

    def advance(self, position: GeoPoint) -> WaypointMatch:
        return advance(position, self._route, self._cursor, config=self.config)

    def upcoming_turn(self, position: GeoPoint) -> Optional[TurnGuidance]:
        if not self.enabled:
            return None
        # Turns behind the matched position are never announced.
        floor_index = max(self._last_turn_index, self._cursor.last_matched_index - 1)
        return next_turn(
            position,
            self._route,
            floor_index,
            turns=self._turns,
            config=self.config,
        )

    def mark_turn_announced(self, index: int) -> None:
        if index > self._last_turn_index:
            self._last_turn_index = index

    def _update_off_route(self, offset_m: float) -> None:
        limit = self.config.snap_max_offset_m
        off_route = limit > 0 and offset_m > limit
        if off_route and not self._off_route:
            LOGGER.warning(
                "Runner is %.0f m from the target route; snapping suspended", offset_m
            )
        elif self._off_route and not off_route:
            LOGGER.info("Runner is back on the target route")
        self._off_route = off_route


__all__ = [
    "MatcherConfig",
    "RouteMatcher",
    "TurnGuidance",
    "TurnPoint",
    "WaypointMatch",
    "advance",
    "detect_turns",
    "instruction_for_turn",
    "next_turn",
    "snap_position",
]
