"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable geometry builders and fakes
for the tracking, announcement and controller tests.
"""
from __future__ import annotations

import json
import math
import os
import sys
from concurrent.futures import Executor, Future
from typing import Any, Callable, List, Optional, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from run_companion.errors import StorageFailureError
from run_companion.models import GeoPoint, LocationFix

# Metres per degree of latitude for the haversine radius used by geomath.
M_PER_DEG = 6371000.0 * math.pi / 180.0

BASE = GeoPoint(52.52, 13.405)


# --- Factory helpers -------------------------------------------------
def offset(origin: GeoPoint, north_m: float = 0.0, east_m: float = 0.0) -> GeoPoint:
    lat = origin.latitude + north_m / M_PER_DEG
    lon = origin.longitude + east_m / (
        M_PER_DEG * math.cos(math.radians(origin.latitude))
    )
    return GeoPoint(lat, lon)


def north_line(origin: GeoPoint, count: int, step_m: float) -> List[GeoPoint]:
    return [offset(origin, north_m=i * step_m) for i in range(count)]


def fix_at(point: GeoPoint, timestamp: float = 0.0) -> LocationFix:
    return LocationFix(point.latitude, point.longitude, timestamp)


def l_shaped_route(step_m: float = 25.0, leg_m: float = 200.0) -> List[GeoPoint]:
    """North for ``leg_m``, then a right turn and east for ``leg_m``."""

    steps = int(leg_m / step_m)
    northbound = north_line(BASE, steps + 1, step_m)
    corner = northbound[-1]
    eastbound = [offset(corner, east_m=i * step_m) for i in range(1, steps + 1)]
    return northbound + eastbound


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        data: Any = None,
        text: Optional[str] = None,
        content: bytes = b"",
        url: str = "https://example.test",
    ):
        self.status_code = status_code
        self._data = data
        self._text = text
        self.content = content
        self.url = url

    def json(self):
        if isinstance(self._data, Exception):
            raise self._data
        if self._data is None:
            raise ValueError("no json body")
        return self._data

    @property
    def text(self):
        if self._text is not None:
            return self._text
        try:
            return json.dumps(self._data)
        except (TypeError, ValueError):
            return str(self._data)


class FakeSession:
    """Records calls and answers with queued responses (or exceptions)."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: List[Tuple[str, str, dict]] = []

    def _next(self, method: str, url: str, kwargs: dict):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class FakeStore:
    def __init__(self, fail: bool = False, weight: Optional[float] = None):
        self.records: List[Any] = []
        self.fail = fail
        self.weight = weight

    def insert_workout(self, record) -> None:
        if self.fail:
            raise StorageFailureError("store offline")
        self.records.append(record)


class ProfileStore(FakeStore):
    def fetch_profile_weight(self, user_id: str, default: float = 70.0) -> float:
        return self.weight if self.weight is not None else default


class RecordingSpeaker:
    def __init__(self):
        self.spoken: List[str] = []

    def speak(self, text: str) -> None:
        self.spoken.append(text)


class FakeSubscription:
    def __init__(self):
        self.removed = False

    def remove(self) -> None:
        self.removed = True


class FakeLocationProvider:
    def __init__(self, granted: bool = True):
        self.granted = granted
        self.callback: Optional[Callable[[LocationFix], None]] = None
        self.subscription: Optional[FakeSubscription] = None
        self.subscribe_kwargs: dict = {}

    def request_permission(self) -> bool:
        return self.granted

    def subscribe(self, callback, **kwargs):
        self.callback = callback
        self.subscribe_kwargs = kwargs
        self.subscription = FakeSubscription()
        return self.subscription

    def emit(self, fix: LocationFix) -> None:
        assert self.callback is not None
        self.callback(fix)


class ManualClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DeferredExecutor(Executor):
    """Executor that runs submitted jobs only when ``run_all`` is called."""

    def __init__(self):
        self.pending: List[Tuple[Future, Callable, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        jobs, self.pending = self.pending, []
        for future, fn, args, kwargs in jobs:
            if future.set_running_or_notify_cancel():
                future.set_result(fn(*args, **kwargs))


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def base_point() -> GeoPoint:
    return BASE


@pytest.fixture
def abc_route() -> List[GeoPoint]:
    """Three points, 100 m apart, heading north."""

    return north_line(BASE, 3, 100.0)


@pytest.fixture
def l_route() -> List[GeoPoint]:
    return l_shaped_route()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def speaker() -> RecordingSpeaker:
    return RecordingSpeaker()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def provider() -> FakeLocationProvider:
    return FakeLocationProvider()
