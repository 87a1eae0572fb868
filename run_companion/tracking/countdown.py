"""Lead-in countdown shown before a workout starts recording."""

from __future__ import annotations

from ..config import COUNTDOWN_EXTEND_SECONDS, COUNTDOWN_SECONDS


class Countdown:
    """Seconds remaining before tracking activates.

    ``tick`` returns True exactly once, on the tick that reaches zero.
    """

    def __init__(
        self,
        seconds: int = COUNTDOWN_SECONDS,
        extend_seconds: int = COUNTDOWN_EXTEND_SECONDS,
    ) -> None:
        if seconds < 0:
            raise ValueError("Countdown seconds must be >= 0")
        self._remaining = seconds
        self._extend_seconds = extend_seconds
        self._finished = seconds == 0

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def finished(self) -> bool:
        return self._finished

    def tick(self) -> bool:
        if self._finished:
            return False
        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            self._finished = True
            return True
        return False

    def extend(self) -> int:
        if not self._finished:
            self._remaining += self._extend_seconds
        return self._remaining

    def skip(self) -> None:
        self._remaining = 0
        self._finished = True


__all__ = ["Countdown"]
