"""Training-plan entries and parsing of generated plan replies."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import ParseFailureError

LOGGER = logging.getLogger(__name__)

_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_PACE_RE = re.compile(r"^\s*(\d{1,2}):([0-5]\d)")


def parse_target_pace(value: Any) -> Optional[float]:
    """Convert ``"M:SS"`` (or a plain number) into decimal minutes per km.

    Ranges such as ``"4:45-5:00"`` use their first pace. Returns None when no
    pace can be read.
    """

    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    match = _PACE_RE.match(text)
    if match:
        return int(match.group(1)) + int(match.group(2)) / 60.0
    try:
        pace = float(text.replace(",", "."))
    except ValueError:
        LOGGER.debug("Unreadable target pace %r", value)
        return None
    return pace if pace > 0 else None


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _optional_int(value: Any) -> Optional[int]:
    number = _optional_float(value)
    return int(number) if number is not None else None


@dataclass(slots=True)
class TrainingSession:
    """One planned run."""

    title: str
    date: Optional[str] = None
    weekday: Optional[str] = None
    description: str = ""
    distance_km: Optional[float] = None
    duration_minutes: Optional[int] = None
    type: str = "unspecified"
    target_pace: Optional[str] = None
    explanation: Optional[str] = None
    id: Optional[str] = None

    @property
    def target_pace_min_per_km(self) -> Optional[float]:
        return parse_target_pace(self.target_pace)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TrainingSession":
        pace = row.get("target_pace_min_per_km")
        return cls(
            id=row.get("id"),
            title=str(row.get("title") or "Untitled"),
            date=row.get("date") or None,
            weekday=row.get("weekday") or None,
            description=str(row.get("description") or ""),
            distance_km=_optional_float(row.get("distance_km")),
            duration_minutes=_optional_int(row.get("duration_minutes")),
            type=str(row.get("type") or "unspecified"),
            target_pace=str(pace) if pace not in (None, "") else None,
            explanation=row.get("explanation") or None,
        )

    def to_row(self, user_id: str) -> Dict[str, Any]:
        """Row layout of the ``training_plan`` table."""

        return {
            "user_id": user_id,
            "date": self.date,
            "weekday": self.weekday,
            "title": self.title,
            "description": self.description,
            "distance_km": self.distance_km,
            "duration_minutes": self.duration_minutes,
            "type": self.type,
            "target_pace_min_per_km": self.target_pace,
            "explanation": self.explanation,
        }


def parse_plan_response(raw: Optional[str]) -> List[TrainingSession]:
    """Extract the JSON array of sessions from a chat reply.

    Replies often wrap the array in prose or markdown fences; everything from
    the first ``[`` to the last ``]`` is parsed.

    Raises:
        ParseFailureError: No array is present or it is not valid JSON.
    """

    if not raw:
        raise ParseFailureError("Empty training plan reply")
    match = _ARRAY_RE.search(raw)
    if not match:
        raise ParseFailureError("No JSON array found in training plan reply")
    try:
        data = json.loads(match.group(0))
    except ValueError as exc:
        LOGGER.error("Unparseable training plan reply: %.200s", raw)
        raise ParseFailureError("Training plan reply is not valid JSON") from exc
    if not isinstance(data, list):
        raise ParseFailureError("Training plan reply is not a list")
    sessions = [TrainingSession.from_row(item) for item in data if isinstance(item, dict)]
    if len(sessions) < len(data):
        LOGGER.warning("Ignored %d non-object plan entries", len(data) - len(sessions))
    return sessions


__all__ = ["TrainingSession", "parse_plan_response", "parse_target_pace"]
