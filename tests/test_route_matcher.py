"""Tests for waypoint matching, turn detection and the stateful matcher."""

from __future__ import annotations

import logging

import pytest

from conftest import BASE, north_line, offset
from run_companion.models import WaypointCursor
from run_companion.navigation.route_matcher import (
    MatcherConfig,
    RouteMatcher,
    advance,
    detect_turns,
    instruction_for_turn,
    next_turn,
    snap_position,
)


def test_advance_from_start_points_at_second_waypoint(abc_route) -> None:
    cursor = WaypointCursor()
    match = advance(abc_route[0], abc_route, cursor)

    assert match.next_index == 1
    assert match.next_point == abc_route[1]
    assert match.distance_m == pytest.approx(100.0, rel=1e-4)
    assert cursor.last_matched_index == 0


def test_advance_near_waypoint_moves_on(abc_route) -> None:
    cursor = WaypointCursor()
    near_b = offset(abc_route[1], north_m=-10)
    match = advance(near_b, abc_route, cursor)

    assert match.next_index >= 1
    assert match.next_point == abc_route[2]
    assert cursor.last_matched_index == 1
    assert match.offset_m == pytest.approx(10.0, rel=1e-3)


def test_cursor_never_moves_backwards(abc_route) -> None:
    cursor = WaypointCursor()
    advance(abc_route[1], abc_route, cursor)
    assert cursor.last_matched_index == 1

    # GPS jitter puts the runner back at the start.
    advance(abc_route[0], abc_route, cursor)
    assert cursor.last_matched_index == 1


def test_search_window_is_bounded_ahead() -> None:
    route = north_line(BASE, 20, 100.0)
    cursor = WaypointCursor()

    advance(route[15], route, cursor)

    assert cursor.last_matched_index == 10


def test_advance_at_route_end_has_no_next_point(abc_route) -> None:
    cursor = WaypointCursor(last_matched_index=2)
    match = advance(abc_route[2], abc_route, cursor)

    assert match.next_point is None
    assert match.next_index == 2
    assert match.distance_m == 0.0


def test_short_routes_disable_matching() -> None:
    cursor = WaypointCursor()
    match = advance(BASE, [BASE], cursor)

    assert match.next_point is None
    assert next_turn(BASE, [BASE], 0) is None
    assert snap_position(offset(BASE, east_m=30), []) == offset(BASE, east_m=30)
    assert RouteMatcher([BASE]).enabled is False


def test_detect_turns_finds_right_angle(l_route) -> None:
    turns = detect_turns(l_route)

    assert [t.index for t in turns] == [8]
    assert turns[0].angle_degrees == pytest.approx(90.0, abs=0.5)
    assert turns[0].point == l_route[8]


def test_detect_turns_left_is_negative() -> None:
    corner = offset(BASE, north_m=100)
    route = [BASE, corner, offset(corner, east_m=-100)]

    turns = detect_turns(route)

    assert len(turns) == 1
    assert turns[0].angle_degrees < 0


def test_detect_turns_skips_zero_length_legs() -> None:
    corner = offset(BASE, north_m=100)
    route = [BASE, corner, corner, offset(corner, north_m=100)]

    assert detect_turns(route) == []


def test_detect_turns_ignores_gentle_bends() -> None:
    mid = offset(BASE, north_m=100)
    route = [BASE, mid, offset(mid, north_m=100, east_m=20)]

    assert detect_turns(route) == []


@pytest.mark.parametrize(
    "angle, expected",
    [
        (35.0, "Bear right"),
        (-40.0, "Bear left"),
        (60.0, "Turn right"),
        (-89.0, "Turn left"),
        (95.0, "Turn sharp right"),
        (-120.0, "Turn sharp left"),
        (170.0, "Make a U-turn"),
        (-155.0, "Make a U-turn"),
    ],
)
def test_instruction_for_turn(angle: float, expected: str) -> None:
    assert instruction_for_turn(angle) == expected


def test_next_turn_reports_turn_within_band(l_route) -> None:
    guidance = next_turn(l_route[4], l_route, 0)

    assert guidance is not None
    assert guidance.turn.index == 8
    assert guidance.distance_m == pytest.approx(100.0, rel=1e-3)
    assert "right" in guidance.instruction


def test_next_turn_ignores_turns_too_close_or_too_far(l_route) -> None:
    assert next_turn(offset(l_route[8], north_m=-10), l_route, 0) is None
    far_south = offset(BASE, north_m=-100)
    assert next_turn(far_south, l_route, 0) is None


def test_next_turn_skips_processed_turns(l_route) -> None:
    assert next_turn(l_route[4], l_route, 8) is None


def test_matcher_snaps_onto_route(abc_route) -> None:
    matcher = RouteMatcher(abc_route)
    snapped = matcher.snap(offset(abc_route[1], east_m=5))

    assert snapped == abc_route[1]
    assert matcher.off_route is False


def test_matcher_flags_off_route_once(abc_route, caplog) -> None:
    matcher = RouteMatcher(abc_route)
    far = offset(abc_route[1], east_m=100)

    with caplog.at_level(logging.WARNING):
        assert matcher.snap(far) == far
        assert matcher.snap(offset(far, north_m=5)) != abc_route[1]

    assert matcher.off_route is True
    assert caplog.text.count("snapping suspended") == 1

    assert matcher.snap(abc_route[2]) == abc_route[2]
    assert matcher.off_route is False


def test_matcher_off_route_disabled_with_zero_limit(abc_route) -> None:
    matcher = RouteMatcher(abc_route, MatcherConfig(snap_max_offset_m=0))
    far = offset(abc_route[1], east_m=100)

    assert matcher.snap(far) == abc_route[1]
    assert matcher.off_route is False


def test_upcoming_turn_is_not_repeated_after_mark(l_route) -> None:
    matcher = RouteMatcher(l_route)
    position = l_route[6]
    matcher.advance(position)

    guidance = matcher.upcoming_turn(position)
    assert guidance is not None
    matcher.mark_turn_announced(guidance.turn.index)

    assert matcher.upcoming_turn(position) is None


def test_set_route_resets_progress(abc_route, l_route) -> None:
    matcher = RouteMatcher(abc_route)
    matcher.advance(abc_route[2])
    assert matcher.cursor.last_matched_index == 2

    matcher.set_route(l_route)

    assert matcher.cursor.last_matched_index == 0
    assert [t.index for t in matcher.turns] == [8]
