"""Workout state machine and live metric reducer.

States::

    IDLE -> COUNTDOWN -> ACTIVE <-> PAUSED -> (stop | cancel) -> IDLE

Every mutation goes through one of the public methods (or :meth:`apply`),
so a caller that serializes those calls gets a consistent state without any
locking in here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..clients.store import WorkoutStore
from ..config import (
    COUNTDOWN_EXTEND_SECONDS,
    COUNTDOWN_SECONDS,
    DEFAULT_WEIGHT_KG,
    PAUSE_RECORDS_LOCATION,
)
from ..errors import ServiceError, SessionStateError
from ..geomath import path_length_km
from ..models import (
    GeoPoint,
    LocationFix,
    TrackingSnapshot,
    TrackingState,
    TrackingStatus,
    WorkoutRecord,
)
from ..navigation.route_matcher import RouteMatcher
from .countdown import Countdown
from .events import CountdownTick, LocationUpdate, SessionEvent, TimerTick

LOGGER = logging.getLogger(__name__)

# Minutes-per-km thresholds (strictly greater than) and the MET value used
# above each one. Anything faster falls through to 12.
_MET_STEPS = (
    (9.0, 6.0),
    (8.0, 7.0),
    (7.0, 8.0),
    (6.0, 9.0),
    (5.0, 10.0),
    (4.5, 11.0),
)
_FASTEST_MET = 12.0


def met_for_pace(pace_min_per_km: float) -> float:
    """Metabolic equivalent for a running pace in minutes per kilometre."""

    for threshold, met in _MET_STEPS:
        if pace_min_per_km > threshold:
            return met
    return _FASTEST_MET


def average_pace(duration_sec: int, distance_km: float) -> float:
    """Minutes per kilometre; 0 while no distance has been covered."""

    if distance_km <= 0:
        return 0.0
    return (duration_sec / 60.0) / distance_km


def calories_burned(pace_min_per_km: float, weight_kg: float, duration_sec: int) -> float:
    """Energy estimate in kcal, rounded to one decimal."""

    return round(met_for_pace(pace_min_per_km) * weight_kg * duration_sec / 3600.0, 1)


def default_workout_name(when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"Workout on {when:%Y-%m-%d}"


@dataclass(slots=True)
class SessionConfig:
    countdown_seconds: int = COUNTDOWN_SECONDS
    extend_seconds: int = COUNTDOWN_EXTEND_SECONDS
    default_weight_kg: float = DEFAULT_WEIGHT_KG
    # When False, fixes arriving during a pause are dropped and the track
    # resumes as a new segment.
    record_while_paused: bool = PAUSE_RECORDS_LOCATION


class TrackingSession:
    def __init__(
        self,
        *,
        store: Optional[WorkoutStore] = None,
        matcher: Optional[RouteMatcher] = None,
        config: Optional[SessionConfig] = None,
        user_id: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or SessionConfig()
        self.store = store
        self.matcher = matcher
        self.user_id = user_id
        self._clock = clock
        self._state = TrackingState(start_weight_kg=self.config.default_weight_kg)
        self._path: List[GeoPoint] = []
        # Indices in _path that start a new segment (no distance to the
        # previous point).
        self._segment_starts: List[int] = []
        self._break_pending = False
        self._countdown: Optional[Countdown] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> TrackingStatus:
        return self._state.status

    @property
    def state(self) -> TrackingSnapshot:
        return self._state.snapshot()

    @property
    def path(self) -> List[GeoPoint]:
        return list(self._path)

    @property
    def position(self) -> Optional[GeoPoint]:
        return self._path[-1] if self._path else None

    @property
    def countdown_remaining(self) -> int:
        return self._countdown.remaining if self._countdown else 0

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        *,
        target_pace_min_per_km: Optional[float] = None,
        target_distance_km: Optional[float] = None,
        weight_kg: Optional[float] = None,
    ) -> None:
        """Set targets and body weight for the next workout."""

        self._require(TrackingStatus.IDLE, action="configure")
        self._state.target_pace_min_per_km = target_pace_min_per_km or None
        self._state.target_distance_km = target_distance_km or None
        if weight_kg is not None and weight_kg > 0:
            self._state.start_weight_kg = weight_kg

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin_countdown(self, seconds: Optional[int] = None) -> int:
        self._require(TrackingStatus.IDLE, action="begin countdown")
        total = self.config.countdown_seconds if seconds is None else seconds
        self._countdown = Countdown(total, self.config.extend_seconds)
        if self._countdown.finished:
            self._activate()
            return 0
        self._state.status = TrackingStatus.COUNTDOWN
        LOGGER.info("Countdown started (%ds)", total)
        return self._countdown.remaining

    def countdown_tick(self) -> bool:
        """Advance the countdown; True when this tick activated tracking."""

        countdown = self._require_countdown("tick countdown")
        if countdown.tick():
            self._activate()
            return True
        return False

    def extend_countdown(self) -> int:
        return self._require_countdown("extend countdown").extend()

    def skip_countdown(self) -> None:
        self._require_countdown("skip countdown").skip()
        self._activate()

    def start(self) -> None:
        """Start tracking immediately, without a countdown."""

        self._require(TrackingStatus.IDLE, action="start")
        self._activate()

    def pause(self) -> None:
        self._require(TrackingStatus.ACTIVE, action="pause")
        self._state.status = TrackingStatus.PAUSED
        LOGGER.info(
            "Workout paused at %.2f km, %ds",
            self._state.distance_km,
            self._state.duration_sec,
        )

    def resume(self) -> None:
        self._require(TrackingStatus.PAUSED, action="resume")
        self._state.status = TrackingStatus.ACTIVE
        if not self.config.record_while_paused:
            self._break_pending = True
        LOGGER.info("Workout resumed")

    def finish(self, name: Optional[str] = None) -> WorkoutRecord:
        """End the workout and return its record without persisting it."""

        self._require(TrackingStatus.ACTIVE, TrackingStatus.PAUSED, action="stop")
        state = self._state
        record = WorkoutRecord(
            user_id=self.user_id,
            name=name or default_workout_name(self._clock()),
            distance_km=state.distance_km,
            duration_sec=state.duration_sec,
            calories=state.calories,
            pace_min_per_km=state.average_pace_min_per_km,
            path=list(self._path),
        )
        LOGGER.info(
            "Workout finished: %.2f km in %ds (%.1f kcal)",
            record.distance_km,
            record.duration_sec,
            record.calories,
        )
        self._reset()
        return record

    def persist(self, record: WorkoutRecord) -> bool:
        """Hand ``record`` to the store; failures are logged, never raised."""

        if self.store is None:
            LOGGER.debug("No workout store configured; record not saved")
            return False
        try:
            self.store.insert_workout(record)
        except ServiceError as exc:
            LOGGER.error("Failed to save workout '%s': %s", record.name, exc)
            return False
        return True

    def stop(self, name: Optional[str] = None) -> WorkoutRecord:
        record = self.finish(name)
        self.persist(record)
        return record

    def cancel(self) -> None:
        self._require(
            TrackingStatus.COUNTDOWN,
            TrackingStatus.ACTIVE,
            TrackingStatus.PAUSED,
            action="cancel",
        )
        LOGGER.info("Workout cancelled from %s", self._state.status.value)
        self._reset()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def apply(self, event: SessionEvent) -> bool:
        """Reduce one event into the state; True when something changed."""

        if isinstance(event, LocationUpdate):
            return self.on_location_update(event.fix)
        if isinstance(event, TimerTick):
            return self.tick()
        if isinstance(event, CountdownTick):
            if self._state.status is not TrackingStatus.COUNTDOWN:
                return False
            self.countdown_tick()
            return True
        raise TypeError(f"Unsupported session event: {event!r}")

    def on_location_update(self, fix: LocationFix) -> bool:
        status = self._state.status
        if status is TrackingStatus.PAUSED and not self.config.record_while_paused:
            return False
        if status not in (TrackingStatus.ACTIVE, TrackingStatus.PAUSED):
            return False
        position = fix.point
        if self.matcher is not None and self.matcher.enabled:
            position = self.matcher.snap(position)
        if self._break_pending:
            if self._path:
                self._segment_starts.append(len(self._path))
            self._break_pending = False
        self._path.append(position)
        self._state.distance_km = self._track_length_km()
        self._recompute()
        LOGGER.debug(
            "Fix %.6f,%.6f -> %.3f km",
            position.latitude,
            position.longitude,
            self._state.distance_km,
        )
        return True

    def tick(self) -> bool:
        if self._state.status is not TrackingStatus.ACTIVE:
            return False
        self._state.duration_sec += 1
        self._recompute()
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _track_length_km(self) -> float:
        bounds: Sequence[int] = [0, *self._segment_starts, len(self._path)]
        return sum(
            path_length_km(self._path[start:end])
            for start, end in zip(bounds, bounds[1:])
        )

    def _recompute(self) -> None:
        state = self._state
        state.average_pace_min_per_km = average_pace(
            state.duration_sec, state.distance_km
        )
        if state.distance_km > 0 and state.duration_sec > 0:
            state.calories = calories_burned(
                state.average_pace_min_per_km,
                state.start_weight_kg,
                state.duration_sec,
            )
        else:
            state.calories = 0.0

    def _activate(self) -> None:
        self._countdown = None
        self._state.status = TrackingStatus.ACTIVE
        LOGGER.info("Tracking started")

    def _reset(self) -> None:
        weight = self._state.start_weight_kg
        self._state = TrackingState(start_weight_kg=weight)
        self._path.clear()
        self._segment_starts.clear()
        self._break_pending = False
        self._countdown = None
        if self.matcher is not None:
            self.matcher.reset()

    def _require(self, *allowed: TrackingStatus, action: str) -> None:
        if self._state.status not in allowed:
            raise SessionStateError(
                f"Cannot {action} while {self._state.status.value}"
            )

    def _require_countdown(self, action: str) -> Countdown:
        self._require(TrackingStatus.COUNTDOWN, action=action)
        if self._countdown is None:
            raise SessionStateError(f"Cannot {action}: no countdown running")
        return self._countdown


__all__ = [
    "SessionConfig",
    "TrackingSession",
    "average_pace",
    "calories_burned",
    "default_workout_name",
    "met_for_pace",
]
