"""Target-route following: waypoint matching and turn guidance."""

from .route_matcher import (
    MatcherConfig,
    RouteMatcher,
    TurnGuidance,
    TurnPoint,
    WaypointMatch,
)

__all__ = [
    "MatcherConfig",
    "RouteMatcher",
    "TurnGuidance",
    "TurnPoint",
    "WaypointMatch",
]
