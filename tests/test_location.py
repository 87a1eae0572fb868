from __future__ import annotations

import logging
import threading

import pytest

from conftest import BASE, fix_at, north_line
from run_companion.location import (
    ReplayLocationProvider,
    filter_fixes,
    load_fixes_csv,
)


def test_load_fixes_csv_with_aliases(tmp_path) -> None:
    path = tmp_path / "run.csv"
    path.write_text("Lat,Lng,Time\n52.52,13.405,100\n52.5209,13.405,105\n", encoding="utf-8")

    fixes = load_fixes_csv(path)

    assert [(f.latitude, f.longitude, f.timestamp) for f in fixes] == [
        (52.52, 13.405, 100.0),
        (52.5209, 13.405, 105.0),
    ]


def test_load_fixes_csv_defaults_timestamps_and_skips_bad_rows(tmp_path, caplog) -> None:
    path = tmp_path / "run.csv"
    path.write_text(
        "latitude,longitude\n52.52,13.405\nbad,13.405\n52.521,13.405\n",
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING):
        fixes = load_fixes_csv(path)

    assert [f.timestamp for f in fixes] == [0.0, 2.0]
    assert "Skipped 1 malformed rows" in caplog.text


def test_load_fixes_csv_requires_coordinates(tmp_path) -> None:
    path = tmp_path / "run.csv"
    path.write_text("latitude,elevation\n52.52,34\n", encoding="utf-8")

    with pytest.raises(ValueError, match="longitude"):
        load_fixes_csv(path)


def test_filter_fixes_applies_interval_and_distance() -> None:
    points = north_line(BASE, 4, 10.0)
    fixes = [
        fix_at(points[0], 0.0),
        fix_at(points[1], 0.5),  # too soon
        fix_at(points[0], 2.0),  # has not moved
        fix_at(points[2], 3.0),
        fix_at(points[3], 4.0),
    ]

    delivered = list(filter_fixes(fixes, min_interval_s=1.0, min_distance_m=1.0))

    assert delivered == [fixes[0], fixes[3], fixes[4]]


def test_replay_provider_delivers_all_fixes() -> None:
    fixes = [fix_at(p, float(i)) for i, p in enumerate(north_line(BASE, 5, 10.0))]
    provider = ReplayLocationProvider(fixes, speed=0)
    received = []
    done = threading.Event()

    def callback(fix) -> None:
        received.append(fix)
        if len(received) == len(fixes):
            done.set()

    subscription = provider.subscribe(callback)
    assert done.wait(5)
    subscription.join(5)

    assert received == fixes
    assert not subscription.active


def test_replay_provider_stops_on_remove() -> None:
    fixes = [fix_at(p, float(i) * 60) for i, p in enumerate(north_line(BASE, 5, 10.0))]
    provider = ReplayLocationProvider(fixes, speed=1.0)
    received = []
    first = threading.Event()

    def callback(fix) -> None:
        received.append(fix)
        first.set()

    subscription = provider.subscribe(callback)
    assert first.wait(5)
    subscription.remove()

    assert received == fixes[:1]
    assert not subscription.active


def test_replay_permission() -> None:
    assert ReplayLocationProvider([], permission_granted=False).request_permission() is False
