"""Directions provider client used to populate a target route.

Only used before a session starts: the result's polyline becomes the
route the matcher follows, its steps are kept for display.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests
from polyline import decode as polyline_decode

from ..config import (
    DIRECTIONS_BATCH_SIZE,
    DIRECTIONS_LANGUAGE,
    DIRECTIONS_MODE,
    DIRECTIONS_URL,
    GOOGLE_MAPS_API_KEY,
    REQUEST_TIMEOUT,
)
from ..errors import NetworkFailureError, ParseFailureError, ServiceError
from ..models import GeoPoint, Route
from .response_handling import check_response, safe_json
from .session import get_default_session

LOGGER = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class DirectionStep:
    instruction: str
    start: GeoPoint
    end: GeoPoint
    distance_m: float
    maneuver: Optional[str] = None


@dataclass(slots=True)
class DirectionsResult:
    steps: List[DirectionStep] = field(default_factory=list)
    polyline: Route = ()


def decode_polyline(encoded: str) -> List[GeoPoint]:
    """Decode an encoded polyline string into route points."""

    if not encoded:
        return []
    try:
        decoded = polyline_decode(encoded)
    except (ValueError, TypeError, IndexError) as exc:
        raise ParseFailureError("Unable to decode polyline") from exc
    return [GeoPoint(float(lat), float(lon)) for lat, lon in decoded]


def strip_html(text: str) -> str:
    """Turn an HTML instruction into plain speakable text."""

    return _SPACE_RE.sub(" ", _TAG_RE.sub(" ", text or "")).strip()


def chunk_coordinates(
    points: Sequence[GeoPoint], batch_size: int = DIRECTIONS_BATCH_SIZE
) -> List[List[GeoPoint]]:
    """Split a coordinate list into request-sized batches.

    Each batch holds at most ``batch_size`` coordinates including its own
    start and end; consecutive batches share their joint coordinate so the
    stitched route stays continuous.
    """

    if batch_size < 2:
        raise ValueError("batch_size must be >= 2")
    if len(points) <= batch_size:
        return [list(points)]
    batches: List[List[GeoPoint]] = []
    start = 0
    while start < len(points) - 1:
        end = min(start + batch_size, len(points))
        batches.append(list(points[start:end]))
        start = end - 1
    return batches


def route_from_steps(steps: Sequence[DirectionStep]) -> Route:
    """Route made of every step start plus the final step end."""

    if not steps:
        return ()
    points = [step.start for step in steps]
    points.append(steps[-1].end)
    return tuple(points)


def _format_point(point: GeoPoint) -> str:
    return f"{point.latitude},{point.longitude}"


def _parse_step(raw: Mapping[str, Any]) -> DirectionStep:
    try:
        start = GeoPoint.from_mapping(raw["start_location"])
        end = GeoPoint.from_mapping(raw["end_location"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ParseFailureError(f"Malformed directions step: {raw!r}") from exc
    distance = raw.get("distance") or {}
    if not isinstance(distance, Mapping):
        raise ParseFailureError(f"Malformed step distance: {distance!r}")
    try:
        distance_m = float(distance.get("value") or 0.0)
    except (TypeError, ValueError) as exc:
        raise ParseFailureError(f"Malformed step distance: {distance!r}") from exc
    return DirectionStep(
        instruction=strip_html(str(raw.get("html_instructions", ""))),
        start=start,
        end=end,
        distance_m=distance_m,
        maneuver=raw.get("maneuver"),
    )


class DirectionsClient:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        session: requests.Session | None = None,
        base_url: str = DIRECTIONS_URL,
        mode: str = DIRECTIONS_MODE,
        language: str = DIRECTIONS_LANGUAGE,
        batch_size: int = DIRECTIONS_BATCH_SIZE,
    ) -> None:
        self._api_key = api_key if api_key is not None else GOOGLE_MAPS_API_KEY
        self._session = session or get_default_session()
        self._base_url = base_url
        self._mode = mode
        self._language = language
        self._batch_size = batch_size

    def fetch_route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint] = (),
    ) -> DirectionsResult:
        """Fetch a walking route through ``waypoints``.

        Raises:
            NetworkFailureError: Transport failure or a non-OK provider status.
            ParseFailureError: The response did not have the expected shape.
        """

        points = [origin, *waypoints, destination]
        batches = chunk_coordinates(points, self._batch_size)
        if len(batches) > 1:
            LOGGER.info(
                "Splitting %d route coordinates into %d directions requests",
                len(points),
                len(batches),
            )
        steps: List[DirectionStep] = []
        path: List[GeoPoint] = []
        for batch in batches:
            route = self._request(batch)
            for leg in route.get("legs") or []:
                for raw_step in leg.get("steps") or []:
                    steps.append(_parse_step(raw_step))
            overview = (route.get("overview_polyline") or {}).get("points", "")
            decoded = decode_polyline(overview)
            if path and decoded and decoded[0] == path[-1]:
                decoded = decoded[1:]
            path.extend(decoded)
        if not path:
            path = list(route_from_steps(steps))
        LOGGER.debug("Directions returned %d steps, %d points", len(steps), len(path))
        return DirectionsResult(steps=steps, polyline=tuple(path))

    def _request(self, batch: Sequence[GeoPoint]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "origin": _format_point(batch[0]),
            "destination": _format_point(batch[-1]),
            "mode": self._mode,
            "language": self._language,
            "key": self._api_key,
        }
        if len(batch) > 2:
            params["waypoints"] = "|".join(_format_point(p) for p in batch[1:-1])
        try:
            response = self._session.get(
                self._base_url, params=params, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as exc:
            raise NetworkFailureError(f"Directions request failed: {exc}") from exc
        check_response(response, "Directions request")
        data = safe_json(response)
        if not isinstance(data, dict):
            raise ParseFailureError("Directions response is not a JSON object")
        status = data.get("status", "UNKNOWN")
        if status != "OK":
            detail = data.get("error_message")
            message = f"Directions request returned status {status}"
            raise NetworkFailureError(f"{message} | {detail}" if detail else message)
        routes = data.get("routes") or []
        if not routes:
            raise NetworkFailureError("Directions response contained no routes")
        return routes[0]


def try_fetch_route(
    client: DirectionsClient,
    points: Sequence[GeoPoint],
) -> Optional[DirectionsResult]:
    """Fetch directions through ``points``; log and return None on failure."""

    if len(points) < 2:
        return None
    try:
        return client.fetch_route(points[0], points[-1], points[1:-1])
    except ServiceError as exc:
        LOGGER.warning("Directions unavailable, continuing without route: %s", exc)
        return None


__all__ = [
    "DirectionStep",
    "DirectionsClient",
    "DirectionsResult",
    "chunk_coordinates",
    "decode_polyline",
    "route_from_steps",
    "strip_html",
    "try_fetch_route",
]
