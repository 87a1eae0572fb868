"""Decide when and what to say during an active workout.

The engine is evaluated once per update tick with a snapshot of the tracking
state (and optional turn guidance). It enqueues announcements on a
:class:`SpeechQueue`; it never talks to the speech provider itself.

Phrases from the text-generation provider are fetched through an optional
executor. Each request remembers the session generation it was made for and
its result is dropped when the generation has moved on (reset after a stop or
cancel), so a slow reply never leaks into the next workout. Without an
executor, phrases are fetched inline; with ``defer_phrases`` they are held
until :meth:`AnnouncementEngine.run_deferred` is called.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from cachetools import TTLCache

from ..config import (
    FINAL_KM_CALLOUT_KM,
    FINAL_STRETCH_CALLOUT_KM,
    MILESTONE_PHRASES_ENABLED,
    NAV_ANNOUNCE_DISTANCE_M,
    NAV_PRECISE_DISTANCE_M,
    NAV_REPEAT_SUPPRESS_S,
    PACE_FIRST_MESSAGE_OFFSET_KM,
    PACE_MAX_MESSAGES_PER_KM,
    PACE_MESSAGE_SPACING_KM,
    PACE_TOLERANCE_MIN_PER_KM,
)
from ..models import (
    Announcement,
    AnnouncementCategory,
    TrackingSnapshot,
    TrackingStatus,
)
from ..navigation.route_matcher import TurnGuidance
from . import phrases
from .queue import SpeechQueue

LOGGER = logging.getLogger(__name__)

PhraseSource = Callable[[str], Optional[str]]
NavKey = Tuple[int, bool, str]

# Tolerance for float distances landing exactly on a boundary.
_EPSILON = 1e-9


@dataclass(slots=True)
class AnnouncementConfig:
    nav_announce_distance_m: float = NAV_ANNOUNCE_DISTANCE_M
    nav_precise_distance_m: float = NAV_PRECISE_DISTANCE_M
    nav_repeat_suppress_s: float = NAV_REPEAT_SUPPRESS_S
    pace_tolerance: float = PACE_TOLERANCE_MIN_PER_KM
    pace_max_messages_per_km: int = PACE_MAX_MESSAGES_PER_KM
    pace_first_offset_km: float = PACE_FIRST_MESSAGE_OFFSET_KM
    pace_spacing_km: float = PACE_MESSAGE_SPACING_KM
    final_km_callout_km: float = FINAL_KM_CALLOUT_KM
    final_stretch_callout_km: float = FINAL_STRETCH_CALLOUT_KM
    milestone_phrases: bool = MILESTONE_PHRASES_ENABLED


class AnnouncementEngine:
    def __init__(
        self,
        queue: SpeechQueue,
        *,
        phrase_source: Optional[PhraseSource] = None,
        executor: Optional[Executor] = None,
        config: Optional[AnnouncementConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        on_turn_announced: Optional[Callable[[int], None]] = None,
        defer_phrases: bool = False,
    ) -> None:
        self.queue = queue
        self.config = config or AnnouncementConfig()
        self._phrase_source = phrase_source
        self._executor = executor
        self._clock = clock
        self._on_turn_announced = on_turn_announced
        self._defer_phrases = defer_phrases
        self._deferred: List[Callable[[], Optional[Announcement]]] = []
        self._lock = threading.Lock()
        self._generation = 0
        self._recent_nav: TTLCache = TTLCache(
            maxsize=64, ttl=self.config.nav_repeat_suppress_s, timer=clock
        )
        self._reset_memory()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def reset(self) -> None:
        """Forget everything announced so far and drop in-flight phrases."""

        with self._lock:
            self._generation += 1
            self._deferred.clear()
        self._reset_memory()
        LOGGER.debug("Announcement engine reset (generation %d)", self._generation)

    def run_deferred(self) -> List[Announcement]:
        """Fetch phrases held back by ``defer_phrases``; return those enqueued.

        Call this without holding any lock the phrase source could wait on.
        """

        with self._lock:
            jobs, self._deferred = self._deferred, []
        announcements: List[Announcement] = []
        for job in jobs:
            announcement = job()
            if announcement is not None:
                announcements.append(announcement)
        return announcements

    def announce_start(self) -> Announcement:
        return self._emit(AnnouncementCategory.MILESTONE, phrases.WORKOUT_STARTED)

    def evaluate(
        self,
        snapshot: TrackingSnapshot,
        guidance: Optional[TurnGuidance] = None,
    ) -> List[Announcement]:
        """Run every trigger once; return the announcements enqueued now.

        Announcements that depend on a phrase fetched through the executor
        are enqueued later and are not part of the returned list.
        """

        if snapshot.status is not TrackingStatus.ACTIVE:
            return []
        emitted: List[Announcement] = []
        self._check_milestone(snapshot, emitted)
        self._check_final_callouts(snapshot, emitted)
        self._check_pace(snapshot, emitted)
        if guidance is not None:
            self._check_navigation(guidance, emitted)
        return emitted

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _check_milestone(
        self, snapshot: TrackingSnapshot, emitted: List[Announcement]
    ) -> None:
        km = math.floor(snapshot.distance_km + _EPSILON)
        if km < 1 or km <= self._last_announced_km:
            return
        self._last_announced_km = km
        pace = snapshot.average_pace_min_per_km
        LOGGER.info("Kilometer %d reached (pace %s)", km, phrases.format_pace(pace))
        if self.config.milestone_phrases and self._phrase_source is not None:
            prompt = phrases.milestone_prompt(km)
            self._request_phrase(
                prompt,
                AnnouncementCategory.MILESTONE,
                lambda phrase: phrases.milestone_text(km, pace, phrase),
                emitted,
            )
        else:
            emitted.append(
                self._emit(
                    AnnouncementCategory.MILESTONE, phrases.milestone_text(km, pace)
                )
            )

    def _check_final_callouts(
        self, snapshot: TrackingSnapshot, emitted: List[Announcement]
    ) -> None:
        target = snapshot.target_distance_km
        distance = snapshot.distance_km
        if not target or distance <= 0 or distance >= target:
            return
        cfg = self.config
        if not self._final_km_done and distance >= target - cfg.final_km_callout_km:
            self._final_km_done = True
            emitted.append(
                self._emit(AnnouncementCategory.MILESTONE, phrases.FINAL_KILOMETER)
            )
        if (
            not self._final_stretch_done
            and distance >= target - cfg.final_stretch_callout_km
        ):
            self._final_stretch_done = True
            emitted.append(
                self._emit(AnnouncementCategory.MILESTONE, phrases.FINAL_STRETCH)
            )

    def _check_pace(
        self, snapshot: TrackingSnapshot, emitted: List[Announcement]
    ) -> None:
        target = snapshot.target_pace_min_per_km
        average = snapshot.average_pace_min_per_km
        if not target or average <= 0:
            return
        distance = snapshot.distance_km
        km = math.floor(distance + _EPSILON)
        if km != self._pace_km:
            self._pace_km = km
            self._pace_messages = 0
            self._last_pace_distance = None

        cfg = self.config
        deviation = average - target
        if abs(deviation) <= cfg.pace_tolerance:
            return
        if self._pace_messages >= cfg.pace_max_messages_per_km:
            return
        if self._last_pace_distance is None:
            if distance - km < cfg.pace_first_offset_km - _EPSILON:
                return
        elif distance - self._last_pace_distance < cfg.pace_spacing_km - _EPSILON:
            return

        # The slot is used even when no phrase comes back.
        self._pace_messages += 1
        self._last_pace_distance = distance
        too_slow = deviation > 0
        LOGGER.info(
            "Pace %s vs target %s: running too %s",
            phrases.format_pace(average),
            phrases.format_pace(target),
            "slow" if too_slow else "fast",
        )
        if self._phrase_source is None:
            emitted.append(
                self._emit(
                    AnnouncementCategory.PACE_COACHING,
                    phrases.fallback_pace_phrase(too_slow),
                )
            )
            return
        prompt = (
            phrases.too_slow_prompt(average, target)
            if too_slow
            else phrases.too_fast_prompt(average, target)
        )
        self._request_phrase(
            prompt,
            AnnouncementCategory.PACE_COACHING,
            lambda phrase: phrase,
            emitted,
        )

    def _check_navigation(
        self, guidance: TurnGuidance, emitted: List[Announcement]
    ) -> None:
        cfg = self.config
        if guidance.distance_m > cfg.nav_announce_distance_m:
            return
        precise = guidance.distance_m <= cfg.nav_precise_distance_m
        key: NavKey = (guidance.turn.index, precise, guidance.instruction)
        if key in self._recent_nav:
            return
        self._recent_nav[key] = True
        text = phrases.navigation_text(
            guidance.distance_m, guidance.instruction, precise=precise
        )
        emitted.append(self._emit(AnnouncementCategory.NAVIGATION, text))
        if precise and self._on_turn_announced is not None:
            self._on_turn_announced(guidance.turn.index)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reset_memory(self) -> None:
        self._last_announced_km = 0
        self._final_km_done = False
        self._final_stretch_done = False
        self._pace_km = 0
        self._pace_messages = 0
        self._last_pace_distance: Optional[float] = None
        self._recent_nav.clear()

    def _emit(self, category: AnnouncementCategory, text: str) -> Announcement:
        announcement = Announcement(category=category, text=text)
        self.queue.put(announcement)
        LOGGER.debug("Queued %s announcement: %s", category.value, text)
        return announcement

    def _request_phrase(
        self,
        prompt: str,
        category: AnnouncementCategory,
        render: Callable[[Optional[str]], Optional[str]],
        emitted: List[Announcement],
    ) -> None:
        generation = self.generation

        def job() -> Optional[str]:
            return render(self._fetch_phrase(prompt))

        if self._executor is None and self._defer_phrases:
            with self._lock:
                self._deferred.append(
                    lambda: self._deliver(job(), category, generation)
                )
            return

        if self._executor is None:
            announcement = self._deliver(job(), category, generation)
            if announcement is not None:
                emitted.append(announcement)
            return

        future = self._executor.submit(job)

        def _done(done: Future) -> None:
            if done.cancelled():
                return
            try:
                text = done.result()
            except Exception as exc:  # pragma: no cover - defensive logging
                LOGGER.error("Phrase job failed: %s", exc, exc_info=True)
                return
            self._deliver(text, category, generation)

        future.add_done_callback(_done)

    def _fetch_phrase(self, prompt: str) -> Optional[str]:
        if self._phrase_source is None:
            return None
        try:
            return self._phrase_source(prompt)
        except Exception as exc:  # pragma: no cover - defensive logging
            LOGGER.warning("Phrase source raised, continuing silently: %s", exc)
            return None

    def _deliver(
        self,
        text: Optional[str],
        category: AnnouncementCategory,
        generation: int,
    ) -> Optional[Announcement]:
        if not text:
            return None
        if generation != self.generation:
            LOGGER.debug("Dropping stale %s phrase: %s", category.value, text)
            return None
        return self._emit(category, text)


__all__ = ["AnnouncementConfig", "AnnouncementEngine", "PhraseSource"]
