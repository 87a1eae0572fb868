"""Workout tracking: session state machine, countdown and events."""

from .countdown import Countdown
from .events import CountdownTick, LocationUpdate, SessionEvent, TimerTick
from .session import SessionConfig, TrackingSession, calories_burned, met_for_pace

__all__ = [
    "Countdown",
    "CountdownTick",
    "LocationUpdate",
    "SessionConfig",
    "SessionEvent",
    "TimerTick",
    "TrackingSession",
    "calories_burned",
    "met_for_pace",
]
