"""Spoken message templates and text-generation prompts."""

from __future__ import annotations

import math
import random
from typing import Optional

WORKOUT_STARTED = "Workout started."
FINAL_KILOMETER = "Final kilometer! Give it everything!"
FINAL_STRETCH = "Only 100 meters to go! Final sprint!"

_FALLBACK_TOO_SLOW = (
    "Pick it up a little, you've got this!",
    "Lift the pace, you're stronger than this!",
    "A bit faster, stay on target!",
)
_FALLBACK_TOO_FAST = (
    "Ease off a little, save your energy.",
    "Slow down slightly, find your rhythm.",
    "Easy now, hold the target pace.",
)


def format_pace(pace_min_per_km: float) -> str:
    """Render minutes per kilometre as ``M:SS``."""

    if pace_min_per_km <= 0 or not math.isfinite(pace_min_per_km):
        return "0:00"
    total_seconds = int(round(pace_min_per_km * 60))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def round_to_ten(distance_m: float) -> int:
    return max(10, int(round(distance_m / 10.0)) * 10)


def navigation_text(distance_m: float, instruction: str, *, precise: bool) -> str:
    meters = round_to_ten(distance_m)
    if precise:
        return f"In {meters} meters, {_lower_first(instruction)}."
    return f"In about {meters} meters, {_lower_first(instruction)}."


def milestone_text(
    kilometers: int, pace_min_per_km: float, phrase: Optional[str] = None
) -> str:
    unit = "kilometer" if kilometers == 1 else "kilometers"
    text = (
        f"{kilometers} {unit} done. "
        f"Average pace {format_pace(pace_min_per_km)} per kilometer."
    )
    if phrase:
        text = f"{text} {phrase}"
    return text


def too_slow_prompt(average_pace: float, target_pace: float) -> str:
    return (
        f"A runner is currently at {format_pace(average_pace)} min/km but is "
        f"aiming for {format_pace(target_pace)} min/km. Give them a short, "
        "friendly push to get back to the target pace. At most 8 words."
    )


def too_fast_prompt(average_pace: float, target_pace: float) -> str:
    return (
        f"A runner is currently at {format_pace(average_pace)} min/km, faster "
        f"than their target of {format_pace(target_pace)} min/km. Suggest "
        "kindly that they slow down a little. At most 8 words."
    )


def milestone_prompt(kilometers: int) -> str:
    return (
        f"A runner just completed kilometer {kilometers}. "
        "Reply with a motivating slogan of at most 5 words."
    )


def fallback_pace_phrase(too_slow: bool, rng: Optional[random.Random] = None) -> str:
    choices = _FALLBACK_TOO_SLOW if too_slow else _FALLBACK_TOO_FAST
    return (rng or random).choice(choices)  # nosec B311


def _lower_first(text: str) -> str:
    # "Turn left" reads as "In 50 meters, turn left."
    return text[:1].lower() + text[1:] if text else text


__all__ = [
    "FINAL_KILOMETER",
    "FINAL_STRETCH",
    "WORKOUT_STARTED",
    "fallback_pace_phrase",
    "format_pace",
    "milestone_prompt",
    "milestone_text",
    "navigation_text",
    "round_to_ten",
    "too_fast_prompt",
    "too_slow_prompt",
]
