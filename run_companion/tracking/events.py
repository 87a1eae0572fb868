"""Events consumed by :meth:`TrackingSession.apply`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..models import LocationFix


@dataclass(frozen=True, slots=True)
class LocationUpdate:
    fix: LocationFix


@dataclass(frozen=True, slots=True)
class TimerTick:
    """One elapsed second of workout time."""


@dataclass(frozen=True, slots=True)
class CountdownTick:
    """One elapsed second of the start countdown."""


SessionEvent = Union[LocationUpdate, TimerTick, CountdownTick]

__all__ = ["CountdownTick", "LocationUpdate", "SessionEvent", "TimerTick"]
