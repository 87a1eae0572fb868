"""Wire the location stream, timer, matcher, session and voice guidance.

``WorkoutController`` is the only writer of the tracking state. Location
callbacks, timer ticks and user commands arrive on different threads; each
one is applied while holding a single reducer lock so it runs to completion
before the next starts. External calls (phrase generation, speech, saving
the workout) happen outside that lock.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from .announcements.dispatcher import SpeechDispatcher
from .announcements.engine import AnnouncementConfig, AnnouncementEngine, PhraseSource
from .announcements.queue import SpeechQueue
from .clients.store import WorkoutStore
from .config import (
    LOCATION_MIN_DISTANCE_M,
    LOCATION_MIN_INTERVAL_S,
    PHRASE_WORKERS,
    SPEECH_POLL_INTERVAL_S,
    TIMER_INTERVAL_S,
)
from .errors import PermissionDeniedError, SessionStateError
from .geomath import path_length_km
from .location import LocationProvider, LocationSubscription
from .models import (
    Announcement,
    GeoPoint,
    LocationFix,
    TrackingSnapshot,
    TrackingStatus,
    WorkoutRecord,
)
from .navigation.route_matcher import (
    MatcherConfig,
    RouteMatcher,
    TurnGuidance,
    WaypointMatch,
)
from .tracking.events import CountdownTick, LocationUpdate, SessionEvent, TimerTick
from .tracking.session import SessionConfig, TrackingSession
from .training_plan import TrainingSession as PlanEntry

LOGGER = logging.getLogger(__name__)


class WorkoutController:
    """Run one workout at a time from start command to saved record.

    Usage:
        controller = WorkoutController(
            location=provider, speak=speech.speak, store=store, route=route
        )
        controller.start(target_pace_min_per_km=5.5, target_distance_km=5)
        ...
        record = controller.stop()

    With ``background=False`` no threads are started: the caller feeds
    events through :meth:`handle` (or :meth:`tick` / :meth:`on_location`)
    and speaks queued items with ``controller.dispatcher.drain()``.
    """

    def __init__(
        self,
        *,
        location: LocationProvider,
        speak: Callable[[str], None],
        store: Optional[WorkoutStore] = None,
        route: Sequence[GeoPoint] = (),
        phrase_source: Optional[PhraseSource] = None,
        user_id: Optional[str] = None,
        session_config: Optional[SessionConfig] = None,
        announcement_config: Optional[AnnouncementConfig] = None,
        matcher_config: Optional[MatcherConfig] = None,
        timer_interval: float = TIMER_INTERVAL_S,
        poll_interval: float = SPEECH_POLL_INTERVAL_S,
        phrase_workers: int = PHRASE_WORKERS,
        clock: Callable[[], float] = time.monotonic,
        background: bool = True,
    ) -> None:
        self._location = location
        self._background = background
        self._store = store
        self.user_id = user_id
        self._timer_interval = timer_interval
        self._lock = threading.RLock()

        self.matcher = RouteMatcher(route, matcher_config)
        self.session = TrackingSession(
            store=store, matcher=self.matcher, config=session_config, user_id=user_id
        )
        self.queue = SpeechQueue()
        self._executor: Optional[ThreadPoolExecutor] = None
        if phrase_source is not None and phrase_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=phrase_workers, thread_name_prefix="phrase"
            )
        self.engine = AnnouncementEngine(
            self.queue,
            phrase_source=phrase_source,
            executor=self._executor,
            config=announcement_config,
            clock=clock,
            on_turn_announced=self.matcher.mark_turn_announced,
            defer_phrases=True,
        )
        self.dispatcher = SpeechDispatcher(self.queue, speak, poll_interval=poll_interval)

        self._subscription: Optional[LocationSubscription] = None
        self._ticker: Optional[threading.Thread] = None
        self._ticker_stop = threading.Event()
        self.last_match: Optional[WaypointMatch] = None
        self.last_guidance: Optional[TurnGuidance] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> TrackingStatus:
        with self._lock:
            return self.session.status

    @property
    def state(self) -> TrackingSnapshot:
        with self._lock:
            return self.session.state

    @property
    def path(self) -> List[GeoPoint]:
        with self._lock:
            return self.session.path

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_route(self, route: Sequence[GeoPoint]) -> None:
        with self._lock:
            if self.session.status is not TrackingStatus.IDLE:
                raise SessionStateError("Cannot change the route during a workout")
            self.matcher.set_route(route)

    def start(
        self,
        *,
        countdown: bool = True,
        countdown_seconds: Optional[int] = None,
        target_pace_min_per_km: Optional[float] = None,
        target_distance_km: Optional[float] = None,
        weight_kg: Optional[float] = None,
    ) -> None:
        """Begin a workout, with the countdown lead-in unless disabled.

        Raises:
            PermissionDeniedError: Location access was refused; nothing starts.
            SessionStateError: A workout is already running.
        """

        if self.status is not TrackingStatus.IDLE:
            raise SessionStateError(f"Cannot start while {self.status.value}")
        if not self._location.request_permission():
            LOGGER.warning("Location permission denied; workout not started")
            raise PermissionDeniedError("Location permission is required to track")
        if weight_kg is None:
            weight_kg = self._profile_weight()

        with self._lock:
            if target_distance_km is None and self.matcher.enabled:
                target_distance_km = path_length_km(self.matcher.route)
                LOGGER.info("Target distance from route: %.2f km", target_distance_km)
            self.session.configure(
                target_pace_min_per_km=target_pace_min_per_km,
                target_distance_km=target_distance_km,
                weight_kg=weight_kg,
            )
            self.engine.reset()
            self.last_match = None
            self.last_guidance = None
            if countdown:
                self.session.begin_countdown(countdown_seconds)
            else:
                self.session.start()
            if self.session.status is TrackingStatus.ACTIVE:
                self.engine.announce_start()

        if self._background:
            self._start_background()

    def start_from_plan(self, entry: PlanEntry, **kwargs) -> None:
        """Start a workout targeting a training-plan session."""

        kwargs.setdefault("target_pace_min_per_km", entry.target_pace_min_per_km)
        kwargs.setdefault("target_distance_km", entry.distance_km)
        self.start(**kwargs)

    def extend_countdown(self) -> int:
        with self._lock:
            return self.session.extend_countdown()

    def skip_countdown(self) -> None:
        with self._lock:
            self.session.skip_countdown()
            self.engine.announce_start()

    def pause(self) -> None:
        with self._lock:
            self.session.pause()

    def resume(self) -> None:
        with self._lock:
            self.session.resume()

    def stop(self, name: Optional[str] = None) -> WorkoutRecord:
        """Finish the workout, save it and return the record.

        A failed save is logged; the controller returns to idle regardless.
        """

        with self._lock:
            record = self.session.finish(name)
            self.engine.reset()
        self._teardown()
        self.session.persist(record)
        return record

    def cancel(self) -> None:
        with self._lock:
            self.session.cancel()
            self.engine.reset()
        self._teardown()

    def close(self) -> None:
        """Release background threads; cancels a running workout."""

        if self.status is not TrackingStatus.IDLE:
            self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Event reducer
    # ------------------------------------------------------------------

    def handle(self, event: SessionEvent) -> List[Announcement]:
        """Apply one event and evaluate announcements; return those enqueued.

        Generated phrases are fetched after the reducer lock is released.
        """

        announcements = self._reduce(event)
        announcements.extend(self.engine.run_deferred())
        return announcements

    def tick(self) -> List[Announcement]:
        """Advance the countdown or the workout clock by one second."""

        with self._lock:
            counting_down = self.session.status is TrackingStatus.COUNTDOWN
        return self.handle(CountdownTick() if counting_down else TimerTick())

    def on_location(self, fix: LocationFix) -> List[Announcement]:
        return self.handle(LocationUpdate(fix))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reduce(self, event: SessionEvent) -> List[Announcement]:
        with self._lock:
            was_counting_down = self.session.status is TrackingStatus.COUNTDOWN
            if not self.session.apply(event):
                return []
            if was_counting_down and self.session.status is TrackingStatus.ACTIVE:
                return [self.engine.announce_start()]
            guidance: Optional[TurnGuidance] = None
            if isinstance(event, LocationUpdate):
                guidance = self._follow_route()
            return self.engine.evaluate(self.session.state, guidance)

    def _on_fix(self, fix: LocationFix) -> None:
        self.on_location(fix)

    def _follow_route(self) -> Optional[TurnGuidance]:
        position = self.session.position
        if position is None or not self.matcher.enabled:
            return None
        self.last_match = self.matcher.advance(position)
        self.last_guidance = self.matcher.upcoming_turn(position)
        return self.last_guidance

    def _profile_weight(self) -> Optional[float]:
        fetch = getattr(self._store, "fetch_profile_weight", None)
        if fetch is None or not self.user_id:
            return None
        return fetch(self.user_id, self.session.config.default_weight_kg)

    def _start_background(self) -> None:
        self.dispatcher.start()
        self._subscription = self._location.subscribe(
            self._on_fix,
            min_interval_s=LOCATION_MIN_INTERVAL_S,
            min_distance_m=LOCATION_MIN_DISTANCE_M,
        )
        self._ticker_stop.clear()
        self._ticker = threading.Thread(
            target=self._run_ticker, name="workout-timer", daemon=True
        )
        self._ticker.start()

    def _run_ticker(self) -> None:
        while not self._ticker_stop.wait(self._timer_interval):
            self.tick()

    def _teardown(self) -> None:
        # Must run without the reducer lock: the location and timer threads
        # may be waiting for it.
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.remove()
        self._ticker_stop.set()
        ticker, self._ticker = self._ticker, None
        if ticker is not None and ticker is not threading.current_thread():
            ticker.join()
        self.dispatcher.stop(clear=True)
        LOGGER.debug("Workout threads stopped")


__all__ = ["WorkoutController"]
