"""Single consumer that turns queued announcements into speech."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..config import SPEECH_POLL_INTERVAL_S
from ..models import Announcement
from .queue import SpeechQueue

LOGGER = logging.getLogger(__name__)


class SpeechDispatcher:
    """Poll the queue and speak one announcement at a time.

    ``speak`` blocks until playback has finished; while it runs no further
    item is taken from the queue, so utterances never overlap.
    """

    def __init__(
        self,
        queue: SpeechQueue,
        speak: Callable[[str], None],
        *,
        poll_interval: float = SPEECH_POLL_INTERVAL_S,
    ) -> None:
        self.queue = queue
        self._speak = speak
        self._poll_interval = poll_interval
        self._busy_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._spoken_count = 0

    @property
    def spoken_count(self) -> int:
        return self._spoken_count

    @property
    def busy(self) -> bool:
        return self._busy_lock.locked()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll(self) -> Optional[Announcement]:
        """Speak the next announcement if idle; return what was spoken."""

        if not self._busy_lock.acquire(blocking=False):
            return None
        try:
            announcement = self.queue.get()
            if announcement is None:
                return None
            try:
                self._speak(announcement.text)
            except Exception as exc:
                LOGGER.error(
                    "Speech failed for %s announcement '%s': %s",
                    announcement.category.value,
                    announcement.text,
                    exc,
                )
                return None
            self._spoken_count += 1
            return announcement
        finally:
            self._busy_lock.release()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="speech-dispatcher", daemon=True
        )
        self._thread.start()
        LOGGER.debug("Speech dispatcher started")

    def stop(self, *, clear: bool = True, timeout: Optional[float] = None) -> None:
        """Stop polling; pending announcements are abandoned when ``clear``."""

        self._stop_event.set()
        if clear:
            dropped = self.queue.clear()
            if dropped:
                LOGGER.info("Dropped %d pending announcements", dropped)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def drain(self) -> int:
        """Speak everything queued right now on the calling thread."""

        if self.running:
            raise RuntimeError("drain() cannot be used while the poll thread runs")
        spoken = 0
        while len(self.queue):
            if self.poll() is not None:
                spoken += 1
        return spoken

    def _run(self) -> None:
        while not self._stop_event.is_set():
            while not self._stop_event.is_set() and self.poll() is not None:
                pass
            self._stop_event.wait(self._poll_interval)


__all__ = ["SpeechDispatcher"]
