"""Workout history summaries for the progress view.

All functions are thin wrappers around pandas; input rows use the layout of
the ``workouts`` table (``distance``, ``duration``, ``calories``, ``pace``,
``created_at``).
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import pandas as pd

LOGGER = logging.getLogger(__name__)

WORKOUT_COLUMNS = ["created_at", "name", "distance", "duration", "calories", "pace"]
SUMMARY_COLUMNS = ["runs", "distance_km", "duration_sec", "calories", "avg_pace"]
_NUMERIC = ["distance", "duration", "calories", "pace"]


def workouts_frame(rows: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Normalise workout rows into a typed DataFrame, oldest first.

    Rows without a parseable ``created_at`` are dropped.
    """

    df = pd.DataFrame(list(rows))
    for column in WORKOUT_COLUMNS:
        if column not in df.columns:
            df[column] = None
    df = df[WORKOUT_COLUMNS].copy()
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True, errors="coerce")
    for column in _NUMERIC:
        df[column] = pd.to_numeric(df[column], errors="coerce").fillna(0.0)
    dropped = int(df["created_at"].isna().sum())
    if dropped:
        LOGGER.warning("Ignoring %d workouts without a valid created_at", dropped)
        df = df.dropna(subset=["created_at"])
    return df.sort_values("created_at").reset_index(drop=True)


def weekly_summary(rows: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Totals per week (weeks start on Monday, UTC).

    ``avg_pace`` is total minutes over total kilometres, so longer runs weigh
    more; it is 0 for weeks without distance.
    """

    df = workouts_frame(rows)
    if df.empty:
        empty = pd.DataFrame(columns=SUMMARY_COLUMNS)
        empty.index.name = "week_start"
        return empty
    created = df["created_at"].dt.tz_convert(None)
    df["week_start"] = created.dt.normalize() - pd.to_timedelta(
        created.dt.weekday, unit="D"
    )
    grouped = df.groupby("week_start")
    summary = pd.DataFrame(
        {
            "runs": grouped.size(),
            "distance_km": grouped["distance"].sum(),
            "duration_sec": grouped["duration"].sum(),
            "calories": grouped["calories"].sum(),
        }
    )
    minutes = summary["duration_sec"] / 60.0
    summary["avg_pace"] = (minutes / summary["distance_km"]).where(
        summary["distance_km"] > 0, 0.0
    )
    return summary[SUMMARY_COLUMNS]


def format_duration(seconds: float) -> str:
    """``HH:MM:SS`` rendering used by the workout list."""

    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


__all__ = ["format_duration", "weekly_summary", "workouts_frame"]
