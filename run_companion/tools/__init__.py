"""Supplementary tooling around recorded workouts."""

from .workout_map import create_workout_map

__all__ = ["create_workout_map"]
