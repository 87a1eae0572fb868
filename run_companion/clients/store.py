"""Record store clients: workouts, saved routes, profiles and plans.

``RecordStore`` talks to a PostgREST endpoint (the hosted backend exposes
its tables this way). ``JsonlWorkoutStore`` keeps workouts in a local JSON
lines file for offline runs and the CLI.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import requests

from ..config import (
    DEFAULT_WEIGHT_KG,
    REQUEST_TIMEOUT,
    STORE_ACCESS_TOKEN,
    STORE_API_KEY,
    STORE_PROFILES_TABLE,
    STORE_ROUTES_TABLE,
    STORE_TRAINING_PLAN_TABLE,
    STORE_URL,
    STORE_WORKOUTS_TABLE,
)
from ..errors import NetworkFailureError, ServiceError, StorageFailureError
from ..geomath import path_length_km
from ..models import GeoPoint, RouteEntry, WorkoutRecord
from .response_handling import check_response, safe_json
from .session import get_default_session

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]
Row = Dict[str, Any]


class WorkoutStore(Protocol):
    def insert_workout(self, record: WorkoutRecord) -> None: ...


class RecordStore:
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url if base_url is not None else STORE_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else STORE_API_KEY
        token = access_token if access_token is not None else STORE_ACCESS_TOKEN
        self._token = token or self._api_key
        self._session = session or get_default_session()

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    def insert_workout(self, record: WorkoutRecord) -> None:
        self._insert(STORE_WORKOUTS_TABLE, record.to_payload())
        LOGGER.info(
            "Saved workout '%s' (%.2f km, %ss)",
            record.name,
            record.distance_km,
            record.duration_sec,
        )

    def fetch_workouts(self, user_id: str) -> List[Row]:
        """Workouts of one user, newest first."""

        return self._select(
            STORE_WORKOUTS_TABLE,
            {"user_id": f"eq.{user_id}", "order": "created_at.desc"},
        )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def fetch_routes(self, user_id: str) -> List[RouteEntry]:
        rows = self._select(
            STORE_ROUTES_TABLE,
            {"user_id": f"eq.{user_id}", "order": "created_at.desc"},
        )
        return [RouteEntry.from_row(row) for row in rows]

    def insert_route(
        self, user_id: str, name: str, coordinates: Sequence[GeoPoint]
    ) -> None:
        payload = {
            "user_id": user_id,
            "name": name,
            "distance": path_length_km(coordinates),
            "coordinates": [
                {"latitude": p.latitude, "longitude": p.longitude} for p in coordinates
            ],
        }
        self._insert(STORE_ROUTES_TABLE, payload)

    # ------------------------------------------------------------------
    # Profile / training plan
    # ------------------------------------------------------------------

    def fetch_profile_weight(
        self, user_id: str, default: float = DEFAULT_WEIGHT_KG
    ) -> float:
        """Body weight from the coach profile; ``default`` when unavailable."""

        try:
            rows = self._select(
                STORE_PROFILES_TABLE,
                {"user_id": f"eq.{user_id}", "select": "weight", "limit": 1},
            )
        except ServiceError as exc:
            LOGGER.warning("Profile weight unavailable, using %.1f kg: %s", default, exc)
            return default
        if not rows:
            return default
        try:
            weight = float(rows[0].get("weight") or 0)
        except (TypeError, ValueError):
            return default
        return weight if weight > 0 else default

    def fetch_training_plan(self, user_id: str) -> List[Row]:
        return self._select(
            STORE_TRAINING_PLAN_TABLE,
            {"user_id": f"eq.{user_id}", "order": "date.asc"},
        )

    # ------------------------------------------------------------------
    # PostgREST helpers
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _url(self, table: str) -> str:
        if not self._base_url:
            raise StorageFailureError("Record store URL is not configured")
        return f"{self._base_url}/rest/v1/{table}"

    def _insert(self, table: str, payload: Row) -> None:
        headers = self._headers()
        headers["Prefer"] = "return=minimal"
        try:
            response = self._session.post(
                self._url(table), json=payload, headers=headers, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as exc:
            raise StorageFailureError(f"Insert into {table} failed: {exc}") from exc
        check_response(response, f"Insert into {table}", error_cls=StorageFailureError)

    def _select(self, table: str, params: Dict[str, Any]) -> List[Row]:
        query = {"select": "*"}
        query.update(params)
        try:
            response = self._session.get(
                self._url(table),
                params=query,
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise NetworkFailureError(f"Query of {table} failed: {exc}") from exc
        check_response(response, f"Query of {table}")
        data = safe_json(response)
        if not isinstance(data, list):
            raise NetworkFailureError(f"Query of {table} returned no row list")
        return [row for row in data if isinstance(row, dict)]


class JsonlWorkoutStore:
    """Append-only workout log in JSON lines format."""

    def __init__(self, path: PathLike) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def insert_workout(self, record: WorkoutRecord) -> None:
        entry = record.to_payload()
        entry["created_at"] = datetime.now(timezone.utc).isoformat()
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise StorageFailureError(
                f"Failed to write workout to {self._path}: {exc}"
            ) from exc
        LOGGER.info("Workout written to %s", self._path)

    def fetch_workouts(self, user_id: Optional[str] = None) -> List[Row]:
        if not self._path.exists():
            return []
        rows: List[Row] = []
        with self._path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    row = json.loads(line)
                except ValueError:
                    LOGGER.warning("Skipping malformed line %d in %s", line_no, self._path)
                    continue
                if user_id is None or row.get("user_id") == user_id:
                    rows.append(row)
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return rows


__all__ = ["JsonlWorkoutStore", "RecordStore", "WorkoutStore"]
