"""HTTP clients for the external services the companion talks to."""

from .directions import DirectionsClient, DirectionsResult, DirectionStep  # noqa: F401
from .session import create_default_session, get_default_session  # noqa: F401
from .speech import (  # noqa: F401
    CommandAudioPlayer,
    ElevenLabsSpeech,
    LoggingSpeaker,
)
from .store import JsonlWorkoutStore, RecordStore, WorkoutStore  # noqa: F401
from .text_generation import TextGenerationClient  # noqa: F401
