"""Tests for offline replay and the command line entry point."""

from __future__ import annotations

import json

import pytest

from conftest import BASE, FakeStore, fix_at, north_line
from run_companion.announcements import phrases
from run_companion.main import load_route_json, main, replay_workout


def _fixes(count: int = 23, step_m: float = 50.0, every_s: float = 10.0):
    return [
        fix_at(point, i * every_s)
        for i, point in enumerate(north_line(BASE, count, step_m))
    ]


def _write_csv(path, fixes) -> None:
    lines = ["latitude,longitude,timestamp"]
    lines += [f"{f.latitude},{f.longitude},{f.timestamp}" for f in fixes]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_replay_workout_speaks_and_saves(speaker) -> None:
    store = FakeStore()

    result = replay_workout(_fixes(), speak=speaker.speak, store=store, name="Replay")

    record = result.record
    assert record.name == "Replay"
    assert record.distance_km == pytest.approx(1.1, rel=1e-6)
    assert record.duration_sec == 220
    assert store.records == [record]
    assert result.spoken == speaker.spoken
    assert speaker.spoken[0] == phrases.WORKOUT_STARTED
    assert any(text.startswith("1 kilometer done.") for text in speaker.spoken)


def test_replay_workout_coaches_pace(speaker) -> None:
    # 200 s per km is far faster than a 6:00 target.
    result = replay_workout(_fixes(), speak=speaker.speak, target_pace_min_per_km=6.0)

    coaching = [
        text
        for text in result.spoken
        if text not in (phrases.WORKOUT_STARTED,) and "kilometer done" not in text
    ]
    assert coaching
    assert result.record.path[0] == BASE


def test_replay_workout_needs_fixes() -> None:
    with pytest.raises(ValueError):
        replay_workout([])


def test_load_route_json_accepts_objects_and_pairs(tmp_path) -> None:
    path = tmp_path / "route.json"
    path.write_text(
        json.dumps(
            {
                "coordinates": [
                    {"latitude": 52.52, "longitude": 13.405},
                    {"lat": 52.521, "lng": 13.405},
                    [52.522, 13.406],
                ]
            }
        ),
        encoding="utf-8",
    )

    points = load_route_json(path)

    assert [p.as_tuple() for p in points] == [
        (52.52, 13.405),
        (52.521, 13.405),
        (52.522, 13.406),
    ]


def test_load_route_json_rejects_unknown_points(tmp_path) -> None:
    path = tmp_path / "route.json"
    path.write_text(json.dumps([52.52, 13.405]), encoding="utf-8")

    with pytest.raises(ValueError):
        load_route_json(path)


def test_cli_simulate_then_history(tmp_path, capsys) -> None:
    fixes = _fixes()
    csv_path = tmp_path / "run.csv"
    _write_csv(csv_path, fixes)
    route_path = tmp_path / "route.json"
    route_path.write_text(
        json.dumps([[f.latitude, f.longitude] for f in fixes]), encoding="utf-8"
    )
    workouts = tmp_path / "workouts.jsonl"
    map_path = tmp_path / "map.html"

    code = main(
        [
            "--log-level",
            "WARNING",
            "simulate",
            str(csv_path),
            "--route",
            str(route_path),
            "--output",
            str(workouts),
            "--map",
            str(map_path),
            "--name",
            "CLI run",
            "--user-id",
            "runner-1",
        ]
    )

    assert code == 0
    assert map_path.exists()
    saved = [json.loads(line) for line in workouts.read_text(encoding="utf-8").splitlines()]
    assert saved[0]["name"] == "CLI run"
    assert saved[0]["user_id"] == "runner-1"

    assert main(["history", str(workouts), "--user-id", "runner-1"]) == 0
    out = capsys.readouterr().out
    assert "distance_km" in out
    assert "1.1" in out


def test_cli_rejects_unreadable_target_pace(tmp_path) -> None:
    csv_path = tmp_path / "run.csv"
    _write_csv(csv_path, _fixes(count=3))

    assert main(["simulate", str(csv_path), "--target-pace", "fast"]) == 2


def test_cli_history_without_workouts(tmp_path, capsys) -> None:
    assert main(["history", str(tmp_path / "missing.jsonl")]) == 0
    assert "No workouts recorded." in capsys.readouterr().out
