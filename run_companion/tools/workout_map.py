"""Interactive map of a recorded workout drawn over its target route."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import folium
import numpy as np

from ..config import SNAP_MAX_OFFSET_M
from ..geomath import distances_km
from ..models import GeoPoint, LatLon
from ..navigation.route_matcher import detect_turns, instruction_for_turn

PathLike = Union[str, Path]

_ROUTE_COLOR = "#1a9641"
_PATH_COLOR = "#2c7bb6"
_OFF_ROUTE_COLOR = "#d73027"
_TURN_COLOR = "#fdae61"


def route_offsets_m(path: Sequence[GeoPoint], route: Sequence[GeoPoint]) -> np.ndarray:
    """Distance in metres from each recorded point to its nearest route point."""

    if not path or not route:
        return np.zeros(len(path), dtype=float)
    return np.asarray(
        [float(distances_km(point, route).min()) * 1000.0 for point in path],
        dtype=float,
    )


def _contiguous_runs(indices: np.ndarray) -> List[Tuple[int, int]]:
    """Inclusive index ranges covering consecutive indices."""

    if indices.size == 0:
        return []
    runs: List[Tuple[int, int]] = []
    start = previous = int(indices[0])
    for value in map(int, indices[1:]):
        if value != previous + 1:
            runs.append((start, previous))
            start = value
        previous = value
    runs.append((start, previous))
    return runs


def off_route_sections(
    path: Sequence[GeoPoint],
    route: Sequence[GeoPoint],
    threshold_m: float = SNAP_MAX_OFFSET_M,
) -> List[List[LatLon]]:
    """Stretches of the recorded path further than ``threshold_m`` from the route."""

    if len(route) < 2 or threshold_m <= 0:
        return []
    offsets = route_offsets_m(path, route)
    indices = np.nonzero(offsets > threshold_m)[0]
    return [
        [p.as_tuple() for p in path[start : end + 1]]
        for start, end in _contiguous_runs(indices)
    ]


def create_workout_map(
    path: Sequence[GeoPoint],
    route: Sequence[GeoPoint] = (),
    *,
    threshold_m: float = SNAP_MAX_OFFSET_M,
    output_html_path: Optional[PathLike] = None,
) -> folium.Map:
    """Build a map with the target route, the recorded path and its turns.

    Args:
        path: Recorded track points in order.
        route: Optional target route; turns and off-route sections are only
            drawn when it has at least two points.
        threshold_m: Offset above which recorded points count as off route.
        output_html_path: Optional file the map is saved to as HTML.

    Raises:
        ValueError: Neither a path nor a route was given.
    """

    anchor = path[0] if path else (route[0] if route else None)
    if anchor is None:
        raise ValueError("A recorded path or a route is required to build a map")

    folium_map = folium.Map(location=anchor.as_tuple(), zoom_start=15, control_scale=True)
    if len(route) >= 2:
        folium.PolyLine(
            [p.as_tuple() for p in route],
            color=_ROUTE_COLOR,
            weight=4,
            opacity=0.8,
            tooltip="Target route",
        ).add_to(folium_map)
        for turn in detect_turns(route):
            label = instruction_for_turn(turn.angle_degrees)
            folium.CircleMarker(
                location=turn.point.as_tuple(),
                radius=5,
                color=_TURN_COLOR,
                fill=True,
                fill_color=_TURN_COLOR,
                tooltip=f"{label} ({turn.angle_degrees:.0f}°)",
            ).add_to(folium_map)
    if len(path) >= 2:
        folium.PolyLine(
            [p.as_tuple() for p in path],
            color=_PATH_COLOR,
            weight=4,
            opacity=0.6,
            tooltip="Recorded path",
        ).add_to(folium_map)
    for section in off_route_sections(path, route, threshold_m):
        if len(section) < 2:
            continue
        folium.PolyLine(
            section,
            color=_OFF_ROUTE_COLOR,
            weight=6,
            opacity=0.9,
            tooltip="Off route",
        ).add_to(folium_map)
    if path:
        folium.Marker(path[0].as_tuple(), tooltip="Start").add_to(folium_map)
        folium.Marker(path[-1].as_tuple(), tooltip="Finish").add_to(folium_map)

    if output_html_path is not None:
        output_path = Path(output_html_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        folium_map.save(str(output_path))

    return folium_map


__all__ = ["create_workout_map", "off_route_sections", "route_offsets_m"]
