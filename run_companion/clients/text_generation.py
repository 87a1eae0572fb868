"""Chat-completion client used for short motivational phrases and plans."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from ..config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    OPENAI_TEMPERATURE,
    REQUEST_TIMEOUT,
)
from ..errors import NetworkFailureError, ParseFailureError, ServiceError
from .response_handling import check_response, safe_json
from .session import get_default_session

LOGGER = logging.getLogger(__name__)


class TextGenerationClient:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        temperature: float = OPENAI_TEMPERATURE,
        base_url: str = OPENAI_BASE_URL,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else OPENAI_API_KEY
        self._model = model
        self._temperature = temperature
        self._base_url = base_url.rstrip("/")
        self._session = session or get_default_session()

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        """Return the first completion for ``prompt``.

        Raises:
            NetworkFailureError: Transport failure or an error status.
            ParseFailureError: The reply carried no message content.
        """

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        body = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                f"{self._base_url}/chat/completions",
                json=body,
                headers=headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise NetworkFailureError(f"Text generation failed: {exc}") from exc
        check_response(response, "Text generation")
        return _first_message(safe_json(response))

    def generate_short_phrase(self, prompt: str) -> Optional[str]:
        """Best-effort phrase; any failure is logged and yields None."""

        try:
            text = self.complete(prompt)
        except ServiceError as exc:
            LOGGER.warning("Phrase generation failed: %s", exc)
            return None
        # Models like to wrap short slogans in quotes.
        text = text.strip().strip('"').strip()
        return text or None


def _first_message(data: Any) -> str:
    if not isinstance(data, dict):
        raise ParseFailureError("Text generation response is not a JSON object")
    choices = data.get("choices") or []
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ParseFailureError("Text generation response contained no choices")
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise ParseFailureError("Text generation response contained no text")
    return content


__all__ = ["TextGenerationClient"]
