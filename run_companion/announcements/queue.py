"""Two-lane priority queue feeding the speech dispatcher."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List, Optional

from ..models import Announcement, AnnouncementCategory


class SpeechQueue:
    """Thread-safe queue where navigation always jumps ahead.

    Navigation announcements go into their own lane, which is drained before
    the lane holding pace coaching and milestones. Each lane is FIFO.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._navigation: Deque[Announcement] = deque()
        self._general: Deque[Announcement] = deque()

    def put(self, announcement: Announcement) -> None:
        with self._lock:
            self._lane(announcement.category).append(announcement)

    def get(self) -> Optional[Announcement]:
        """Pop the next announcement, or None when both lanes are empty."""

        with self._lock:
            if self._navigation:
                return self._navigation.popleft()
            if self._general:
                return self._general.popleft()
            return None

    def clear(self) -> int:
        with self._lock:
            dropped = len(self._navigation) + len(self._general)
            self._navigation.clear()
            self._general.clear()
            return dropped

    def pending(self) -> List[Announcement]:
        """Queued announcements in the order they will be spoken."""

        with self._lock:
            return [*self._navigation, *self._general]

    def __len__(self) -> int:
        with self._lock:
            return len(self._navigation) + len(self._general)

    def _lane(self, category: AnnouncementCategory) -> Deque[Announcement]:
        if category is AnnouncementCategory.NAVIGATION:
            return self._navigation
        return self._general


__all__ = ["SpeechQueue"]
