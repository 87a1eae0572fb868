"""Command line entry point.

``simulate`` replays a recorded fix file through the full tracking and
voice-guidance pipeline without waiting in real time; ``history`` prints a
weekly summary of workouts saved in a JSON lines file.
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from .clients.directions import DirectionsClient, try_fetch_route
from .clients.speech import ElevenLabsSpeech, LoggingSpeaker
from .clients.store import JsonlWorkoutStore, WorkoutStore
from .clients.text_generation import TextGenerationClient
from .location import ReplayLocationProvider, filter_fixes, load_fixes_csv
from .models import GeoPoint, LocationFix, WorkoutRecord
from .progress import format_duration, weekly_summary
from .tools.workout_map import create_workout_map
from .training_plan import parse_target_pace
from .workout import WorkoutController

PathLike = Union[str, Path]

LOGGER = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    record: WorkoutRecord
    spoken: List[str] = field(default_factory=list)


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def load_route_json(path: PathLike) -> List[GeoPoint]:
    """Read a route saved as a JSON list of points.

    Points may be ``{"latitude", "longitude"}`` / ``{"lat", "lng"}`` objects
    or ``[lat, lon]`` pairs.
    """

    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        data = data.get("coordinates") or data.get("route") or []
    points: List[GeoPoint] = []
    for item in data:
        if isinstance(item, dict):
            points.append(GeoPoint.from_mapping(item))
        elif isinstance(item, (list, tuple)) and len(item) >= 2:
            points.append(GeoPoint(float(item[0]), float(item[1])))
        else:
            raise ValueError(f"{path}: unsupported route point {item!r}")
    return points


def replay_workout(
    fixes: Sequence[LocationFix],
    *,
    route: Sequence[GeoPoint] = (),
    speak: Optional[Callable[[str], None]] = None,
    store: Optional[WorkoutStore] = None,
    phrase_source: Optional[Callable[[str], Optional[str]]] = None,
    target_pace_min_per_km: Optional[float] = None,
    target_distance_km: Optional[float] = None,
    weight_kg: Optional[float] = None,
    user_id: Optional[str] = None,
    name: Optional[str] = None,
) -> ReplayResult:
    """Run recorded fixes through a controller on the calling thread.

    Timer ticks are derived from the fix timestamps, so the replay takes as
    long as the processing, not as long as the run.
    """

    if not fixes:
        raise ValueError("At least one location fix is required")
    spoken: List[str] = []
    voice = speak or LoggingSpeaker().speak

    def _speak(text: str) -> None:
        spoken.append(text)
        voice(text)

    controller = WorkoutController(
        location=ReplayLocationProvider(fixes),
        speak=_speak,
        store=store,
        route=route,
        phrase_source=phrase_source,
        user_id=user_id,
        phrase_workers=0,
        background=False,
    )
    controller.start(
        countdown=False,
        target_pace_min_per_km=target_pace_min_per_km,
        target_distance_km=target_distance_km,
        weight_kg=weight_kg,
    )
    controller.dispatcher.drain()
    started_at = fixes[0].timestamp
    elapsed = 0
    for fix in filter_fixes(fixes):
        while elapsed < int(fix.timestamp - started_at):
            controller.tick()
            elapsed += 1
        controller.on_location(fix)
        controller.dispatcher.drain()
    record = controller.stop(name)
    controller.close()
    return ReplayResult(record=record, spoken=spoken)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run_companion",
        description="Running companion: replay workouts with voice guidance",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Python logging level",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    simulate = commands.add_parser(
        "simulate", help="Replay a CSV of GPS fixes through the tracker"
    )
    simulate.add_argument("fixes", help="CSV with latitude,longitude[,timestamp]")
    simulate.add_argument("--route", help="JSON file with the target route points")
    simulate.add_argument(
        "--directions",
        action="store_true",
        help="Treat --route points as waypoints and fetch a walking route",
    )
    simulate.add_argument("--target-distance", type=float, help="Target distance (km)")
    simulate.add_argument("--target-pace", help="Target pace as M:SS per km")
    simulate.add_argument("--weight", type=float, help="Body weight in kg")
    simulate.add_argument("--user-id", help="User id stored with the workout")
    simulate.add_argument("--name", help="Workout name")
    simulate.add_argument(
        "--voice",
        action="store_true",
        help="Speak through the speech provider instead of logging",
    )
    simulate.add_argument(
        "--phrases",
        action="store_true",
        help="Fetch motivational phrases from the text-generation provider",
    )
    simulate.add_argument("--map", help="Write an HTML map of the workout here")
    simulate.add_argument("--output", help="Append the workout to this JSONL file")

    history = commands.add_parser("history", help="Weekly summary of saved workouts")
    history.add_argument("workouts", help="JSONL file written by simulate --output")
    history.add_argument("--user-id", help="Only include this user's workouts")
    return parser


def _run_simulate(args: argparse.Namespace) -> int:
    fixes = load_fixes_csv(args.fixes)
    route: List[GeoPoint] = load_route_json(args.route) if args.route else []
    if route and args.directions:
        result = try_fetch_route(DirectionsClient(), route)
        if result is not None and len(result.polyline) >= 2:
            route = list(result.polyline)
    target_pace = parse_target_pace(args.target_pace)
    if args.target_pace and target_pace is None:
        LOGGER.error("Unreadable target pace %r (expected M:SS)", args.target_pace)
        return 2

    speak = ElevenLabsSpeech().speak if args.voice else None
    phrase_source = (
        TextGenerationClient().generate_short_phrase if args.phrases else None
    )
    store = JsonlWorkoutStore(args.output) if args.output else None
    result = replay_workout(
        fixes,
        route=route,
        speak=speak,
        store=store,
        phrase_source=phrase_source,
        target_pace_min_per_km=target_pace,
        target_distance_km=args.target_distance,
        weight_kg=args.weight,
        user_id=args.user_id,
        name=args.name,
    )
    record = result.record
    LOGGER.info(
        "%s: %.2f km in %s, %.1f kcal, %d announcements",
        record.name,
        record.distance_km,
        format_duration(record.duration_sec),
        record.calories,
        len(result.spoken),
    )
    if args.map:
        create_workout_map(record.path, route, output_html_path=args.map)
        LOGGER.info("Map written to %s", args.map)
    return 0


def _run_history(args: argparse.Namespace) -> int:
    rows = JsonlWorkoutStore(args.workouts).fetch_workouts(args.user_id)
    summary = weekly_summary(rows)
    if summary.empty:
        print("No workouts recorded.")
        return 0
    print(summary.round(2).to_string())
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.log_level)
    if args.command == "simulate":
        return _run_simulate(args)
    return _run_history(args)


__all__ = ["ReplayResult", "load_route_json", "main", "replay_workout"]
