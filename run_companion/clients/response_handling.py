"""Shared HTTP response helpers for external service clients."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

import requests

from ..errors import NetworkFailureError, ServiceError

RequestsJSONDecodeError: Type[Exception]
if hasattr(requests.exceptions, "JSONDecodeError"):
    RequestsJSONDecodeError = requests.exceptions.JSONDecodeError
else:  # pragma: no cover - fallback for old requests versions
    RequestsJSONDecodeError = ValueError

LOGGER = logging.getLogger(__name__)

__all__ = [
    "check_response",
    "extract_error",
    "safe_json",
]


def check_response(
    response: requests.Response,
    context: str,
    *,
    error_cls: Type[ServiceError] = NetworkFailureError,
) -> None:
    """Raise ``error_cls`` with provider detail for any non-2xx status."""

    status = response.status_code
    if status < 400:
        return
    detail = extract_error(response)
    message = f"{context} failed (status {status})"
    if detail:
        message = f"{message} | {detail}"
    if status in (401, 403):
        LOGGER.warning("%s; check the configured API key", message)
    elif status == 429:
        LOGGER.warning("%s; provider rate limit reached", message)
    else:
        LOGGER.error(message)
    raise error_cls(message)


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return compact string with provider error info if present."""

    if resp is None:
        return None
    data = safe_json(resp)
    if data is None:
        return _extract_error_text(resp)
    if not isinstance(data, dict):
        return None
    parts = _collect_error_parts(data)
    return " | ".join(parts) if parts else None


def safe_json(resp: requests.Response) -> Optional[Any]:
    """Safely parse JSON; return None if parsing fails."""

    try:
        return resp.json()
    except (
        ValueError,
        RequestsJSONDecodeError,
    ) as exc:  # pragma: no cover - logging path
        LOGGER.debug(
            "Failed to decode JSON from %s: %s", getattr(resp, "url", "?"), exc
        )
        return None


def _extract_error_text(resp: requests.Response) -> Optional[str]:
    """Best-effort plain-text extraction when JSON parsing fails."""

    text = getattr(resp, "text", "")
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    return (trimmed[:297] + "...") if len(trimmed) > 300 else trimmed


def _collect_error_parts(data: Dict[str, Any]) -> List[str]:
    """Build error snippets from the error shapes the providers use."""

    parts: List[str] = []
    error = data.get("error")
    if isinstance(error, dict):
        # {"error": {"message": ..., "type": ...}}
        if error.get("message"):
            parts.append(str(error["message"]))
        if error.get("type"):
            parts.append(str(error["type"]))
    elif error:
        parts.append(str(error))
    detail = data.get("detail")
    if isinstance(detail, dict) and detail.get("message"):
        parts.append(str(detail["message"]))
    elif isinstance(detail, str):
        parts.append(detail)
    for key in ("message", "error_message", "details", "hint", "code"):
        value = data.get(key)
        if value:
            parts.append(str(value))
    return parts
