"""Location stream contract and a provider replaying recorded fixes."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import (
    Callable,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
)

import pandas as pd

from .config import LOCATION_MIN_DISTANCE_M, LOCATION_MIN_INTERVAL_S
from .geomath import distance_m
from .models import LocationFix

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]
LocationCallback = Callable[[LocationFix], None]

_COLUMN_ALIASES = {
    "lat": "latitude",
    "lng": "longitude",
    "lon": "longitude",
    "time": "timestamp",
}


def _canonical_column(name: object) -> str:
    key = str(name).strip().lower()
    return _COLUMN_ALIASES.get(key, key)


class LocationSubscription(Protocol):
    def remove(self) -> None: ...


class LocationProvider(Protocol):
    def request_permission(self) -> bool: ...

    def subscribe(
        self,
        callback: LocationCallback,
        *,
        min_interval_s: float = LOCATION_MIN_INTERVAL_S,
        min_distance_m: float = LOCATION_MIN_DISTANCE_M,
    ) -> LocationSubscription: ...


def load_fixes_csv(path: PathLike) -> List[LocationFix]:
    """Read ``latitude,longitude[,timestamp]`` rows from a CSV file.

    Rows without a timestamp are spaced one second apart. Rows with missing
    or non-numeric coordinates are skipped.
    """

    df = pd.read_csv(path)
    df = df.rename(columns=_canonical_column)
    missing = {"latitude", "longitude"} - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(sorted(missing))}")
    df["latitude"] = pd.to_numeric(df["latitude"], errors="coerce")
    df["longitude"] = pd.to_numeric(df["longitude"], errors="coerce")
    if "timestamp" in df.columns:
        df["timestamp"] = pd.to_numeric(df["timestamp"], errors="coerce")
    else:
        df["timestamp"] = range(len(df))
    before = len(df)
    df = df.dropna(subset=["latitude", "longitude", "timestamp"])
    if len(df) < before:
        LOGGER.warning("Skipped %d malformed rows in %s", before - len(df), path)
    return [
        LocationFix(float(row.latitude), float(row.longitude), float(row.timestamp))
        for row in df.itertuples(index=False)
    ]


def filter_fixes(
    fixes: Iterable[LocationFix],
    *,
    min_interval_s: float = LOCATION_MIN_INTERVAL_S,
    min_distance_m: float = LOCATION_MIN_DISTANCE_M,
) -> Iterator[LocationFix]:
    """Yield fixes the way a platform location stream would deliver them.

    A fix is passed on only when at least ``min_interval_s`` elapsed and the
    runner moved at least ``min_distance_m`` since the last delivered fix.
    The first fix is always delivered.
    """

    last: Optional[LocationFix] = None
    for fix in fixes:
        if last is not None:
            if fix.timestamp - last.timestamp < min_interval_s:
                continue
            if distance_m(last.point, fix.point) < min_distance_m:
                continue
        last = fix
        yield fix


class _ReplaySubscription:
    def __init__(self) -> None:
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def remove(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)


class ReplayLocationProvider:
    """Deliver recorded fixes on a background thread.

    ``speed`` scales the recorded gaps between fixes (2.0 replays twice as
    fast); 0 replays without waiting.
    """

    def __init__(
        self,
        fixes: Sequence[LocationFix],
        *,
        permission_granted: bool = True,
        speed: float = 1.0,
    ) -> None:
        self._fixes = list(fixes)
        self._permission_granted = permission_granted
        self._speed = max(0.0, speed)

    @classmethod
    def from_csv(cls, path: PathLike, **kwargs) -> "ReplayLocationProvider":
        return cls(load_fixes_csv(path), **kwargs)

    def request_permission(self) -> bool:
        return self._permission_granted

    def subscribe(
        self,
        callback: LocationCallback,
        *,
        min_interval_s: float = LOCATION_MIN_INTERVAL_S,
        min_distance_m: float = LOCATION_MIN_DISTANCE_M,
    ) -> _ReplaySubscription:
        subscription = _ReplaySubscription()
        thread = threading.Thread(
            target=self._replay,
            args=(callback, subscription, min_interval_s, min_distance_m),
            name="location-replay",
            daemon=True,
        )
        subscription._thread = thread
        thread.start()
        LOGGER.info("Replaying %d recorded fixes", len(self._fixes))
        return subscription

    def _replay(
        self,
        callback: LocationCallback,
        subscription: _ReplaySubscription,
        min_interval_s: float,
        min_distance_m: float,
    ) -> None:
        previous: Optional[LocationFix] = None
        delivered = 0
        for fix in filter_fixes(
            self._fixes, min_interval_s=min_interval_s, min_distance_m=min_distance_m
        ):
            if previous is not None and self._speed > 0:
                gap = max(0.0, fix.timestamp - previous.timestamp) / self._speed
                if subscription._stop.wait(gap):
                    break
            if subscription._stop.is_set():
                break
            try:
                callback(fix)
            except Exception as exc:  # pragma: no cover - defensive logging
                LOGGER.error("Location callback failed: %s", exc, exc_info=True)
            previous = fix
            delivered += 1
        LOGGER.debug("Replay finished after %d fixes", delivered)


__all__ = [
    "LocationCallback",
    "LocationProvider",
    "LocationSubscription",
    "ReplayLocationProvider",
    "filter_fixes",
    "load_fixes_csv",
]
