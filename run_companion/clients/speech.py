"""Speech rendering: text in, audio played to completion out."""

from __future__ import annotations

import logging
import os
import subprocess  # nosec B404 - fixed player command from configuration
import tempfile
import time
from typing import Optional, Protocol, Sequence

import requests

from ..config import (
    AUDIO_PLAYER_COMMAND,
    ELEVENLABS_API_KEY,
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL_ID,
    ELEVENLABS_SIMILARITY_BOOST,
    ELEVENLABS_STABILITY,
    ELEVENLABS_VOICE_ID,
    REQUEST_TIMEOUT,
)
from ..errors import NetworkFailureError, ServiceError
from .response_handling import check_response
from .session import get_default_session

LOGGER = logging.getLogger(__name__)


class Speaker(Protocol):
    def speak(self, text: str) -> None: ...


class AudioPlayer(Protocol):
    def play(self, audio: bytes) -> None: ...


class CommandAudioPlayer:
    """Play audio by writing it to a temp file and running a player command."""

    def __init__(
        self, command: Sequence[str] = AUDIO_PLAYER_COMMAND, *, suffix: str = ".mp3"
    ) -> None:
        if not command:
            raise ValueError("An audio player command is required")
        self._command = list(command)
        self._suffix = suffix

    def play(self, audio: bytes) -> None:
        with tempfile.NamedTemporaryFile(suffix=self._suffix, delete=False) as handle:
            handle.write(audio)
            path = handle.name
        try:
            subprocess.run([*self._command, path], check=True)  # nosec B603
        except (OSError, subprocess.CalledProcessError) as exc:
            raise ServiceError(f"Audio playback failed: {exc}") from exc
        finally:
            try:
                os.unlink(path)
            except OSError:
                LOGGER.debug("Could not remove temp audio file %s", path)


class ElevenLabsSpeech:
    def __init__(
        self,
        *,
        player: Optional[AudioPlayer] = None,
        api_key: Optional[str] = None,
        voice_id: str = ELEVENLABS_VOICE_ID,
        model_id: str = ELEVENLABS_MODEL_ID,
        base_url: str = ELEVENLABS_BASE_URL,
        session: requests.Session | None = None,
    ) -> None:
        self._player = player or CommandAudioPlayer()
        self._api_key = api_key if api_key is not None else ELEVENLABS_API_KEY
        self._voice_id = voice_id
        self._model_id = model_id
        self._base_url = base_url.rstrip("/")
        self._session = session or get_default_session()

    def synthesize(self, text: str) -> bytes:
        """Render ``text`` to mp3 bytes."""

        url = f"{self._base_url}/text-to-speech/{self._voice_id}/stream"
        body = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": {
                "stability": ELEVENLABS_STABILITY,
                "similarity_boost": ELEVENLABS_SIMILARITY_BOOST,
            },
        }
        headers = {"xi-api-key": self._api_key, "Content-Type": "application/json"}
        try:
            response = self._session.post(
                url, json=body, headers=headers, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as exc:
            raise NetworkFailureError(f"Speech synthesis failed: {exc}") from exc
        check_response(response, "Speech synthesis")
        if not response.content:
            raise NetworkFailureError("Speech synthesis returned no audio")
        return response.content

    def speak(self, text: str) -> None:
        """Synthesize and play ``text``; returns when playback finishes."""

        self._player.play(self.synthesize(text))


class LoggingSpeaker:
    """Console stand-in for a voice: logs each utterance.

    ``seconds_per_word`` approximates playback time so queue behaviour can be
    observed in simulations.
    """

    def __init__(self, seconds_per_word: float = 0.0) -> None:
        self._seconds_per_word = max(0.0, seconds_per_word)

    def speak(self, text: str) -> None:
        LOGGER.info("[voice] %s", text)
        if self._seconds_per_word:
            time.sleep(self._seconds_per_word * len(text.split()))


__all__ = [
    "AudioPlayer",
    "CommandAudioPlayer",
    "ElevenLabsSpeech",
    "LoggingSpeaker",
    "Speaker",
]
