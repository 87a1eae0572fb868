"""Voice guidance: trigger evaluation, priority queue and speech dispatch."""

from .dispatcher import SpeechDispatcher
from .engine import AnnouncementConfig, AnnouncementEngine
from .queue import SpeechQueue

__all__ = [
    "AnnouncementConfig",
    "AnnouncementEngine",
    "SpeechDispatcher",
    "SpeechQueue",
]
