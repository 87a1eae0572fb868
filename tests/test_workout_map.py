from __future__ import annotations

import folium
import numpy as np
import pytest

from conftest import BASE, north_line, offset
from run_companion.tools.workout_map import (
    _contiguous_runs,
    create_workout_map,
    off_route_sections,
    route_offsets_m,
)


def test_contiguous_runs() -> None:
    assert _contiguous_runs(np.array([1, 2, 3, 7, 9, 10])) == [(1, 3), (7, 7), (9, 10)]
    assert _contiguous_runs(np.array([], dtype=int)) == []


def test_route_offsets() -> None:
    route = north_line(BASE, 3, 100.0)
    path = [route[0], offset(route[1], east_m=30)]

    offsets = route_offsets_m(path, route)

    assert offsets[0] == pytest.approx(0.0, abs=1e-6)
    assert offsets[1] == pytest.approx(30.0, rel=1e-3)


def test_off_route_sections_detects_detour() -> None:
    route = north_line(BASE, 5, 100.0)
    path = [
        route[0],
        offset(route[1], east_m=80),
        offset(route[2], east_m=90),
        route[3],
        route[4],
    ]

    sections = off_route_sections(path, route, threshold_m=40.0)

    assert len(sections) == 1
    assert sections[0] == [path[1].as_tuple(), path[2].as_tuple()]


def test_off_route_sections_need_route_and_threshold() -> None:
    path = [BASE, offset(BASE, east_m=500)]
    assert off_route_sections(path, [BASE]) == []
    assert off_route_sections(path, north_line(BASE, 3, 100.0), threshold_m=0) == []


def test_create_workout_map_saves_html(tmp_path, l_route) -> None:
    path = [l_route[0], offset(l_route[4], east_m=80), offset(l_route[5], east_m=80), l_route[8]]
    output = tmp_path / "maps" / "workout.html"

    result = create_workout_map(path, l_route, output_html_path=output)

    assert isinstance(result, folium.Map)
    assert output.exists()
    html = result.get_root().render()
    assert "Target route" in html
    assert "Recorded path" in html
    assert "Off route" in html


def test_create_workout_map_requires_data() -> None:
    with pytest.raises(ValueError):
        create_workout_map([], [])
