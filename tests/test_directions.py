"""Tests for the directions client and its helpers."""

from __future__ import annotations

import logging

import polyline
import pytest
import requests

from conftest import BASE, FakeResponse, FakeSession, north_line
from run_companion.clients.directions import (
    DirectionsClient,
    chunk_coordinates,
    decode_polyline,
    route_from_steps,
    strip_html,
    try_fetch_route,
)
from run_companion.errors import NetworkFailureError, ParseFailureError
from run_companion.models import GeoPoint

ORIGIN = GeoPoint(52.52, 13.405)
MIDDLE = GeoPoint(52.521, 13.406)
DESTINATION = GeoPoint(52.522, 13.407)


def _step(start: GeoPoint, end: GeoPoint, html: str, meters: float) -> dict:
    return {
        "start_location": {"lat": start.latitude, "lng": start.longitude},
        "end_location": {"lat": end.latitude, "lng": end.longitude},
        "html_instructions": html,
        "distance": {"value": meters, "text": f"{meters} m"},
    }


def _ok_payload(points, steps=()) -> dict:
    return {
        "status": "OK",
        "routes": [
            {
                "legs": [{"steps": list(steps)}],
                "overview_polyline": {
                    "points": polyline.encode([p.as_tuple() for p in points])
                },
            }
        ],
    }


def test_chunk_coordinates_shares_joints() -> None:
    points = north_line(BASE, 30, 10.0)

    batches = chunk_coordinates(points, 25)

    assert [len(b) for b in batches] == [25, 6]
    assert batches[0][-1] == batches[1][0] == points[24]
    assert batches[1][-1] == points[29]


def test_chunk_coordinates_small_input_is_one_batch() -> None:
    points = north_line(BASE, 3, 10.0)
    assert chunk_coordinates(points, 25) == [points]


def test_chunk_coordinates_rejects_tiny_batches() -> None:
    with pytest.raises(ValueError):
        chunk_coordinates(north_line(BASE, 3, 10.0), 1)


def test_strip_html() -> None:
    text = 'Turn <b>left</b> onto <div style="font-size:0.9em">Main St</div>'
    assert strip_html(text) == "Turn left onto Main St"
    assert strip_html("") == ""


def test_decode_polyline_reference_string() -> None:
    points = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

    assert [p.as_tuple() for p in points] == [
        pytest.approx((38.5, -120.2)),
        pytest.approx((40.7, -120.95)),
        pytest.approx((43.252, -126.453)),
    ]
    assert decode_polyline("") == []


def test_route_from_steps_appends_final_end() -> None:
    client = DirectionsClient(
        session=FakeSession(
            FakeResponse(
                data={
                    "status": "OK",
                    "routes": [
                        {
                            "legs": [
                                {
                                    "steps": [
                                        _step(ORIGIN, MIDDLE, "Head <b>north</b>", 130),
                                        _step(MIDDLE, DESTINATION, "Turn right", 130),
                                    ]
                                }
                            ]
                        }
                    ],
                }
            )
        ),
        api_key="key",
    )

    result = client.fetch_route(ORIGIN, DESTINATION)

    assert result.polyline == (ORIGIN, MIDDLE, DESTINATION)
    assert result.polyline == route_from_steps(result.steps)
    assert [s.instruction for s in result.steps] == ["Head north", "Turn right"]
    assert result.steps[0].distance_m == 130.0


def test_fetch_route_sends_waypoints_and_decodes_overview() -> None:
    session = FakeSession(
        FakeResponse(data=_ok_payload([ORIGIN, MIDDLE, DESTINATION]))
    )
    client = DirectionsClient(session=session, api_key="secret", mode="walking")

    result = client.fetch_route(ORIGIN, DESTINATION, [MIDDLE])

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    params = kwargs["params"]
    assert params["origin"] == "52.52,13.405"
    assert params["destination"] == "52.522,13.407"
    assert params["waypoints"] == "52.521,13.406"
    assert params["mode"] == "walking"
    assert params["key"] == "secret"
    assert len(result.polyline) == 3
    assert result.polyline[1].latitude == pytest.approx(52.521)


def test_fetch_route_stitches_batches() -> None:
    session = FakeSession(
        FakeResponse(data=_ok_payload([ORIGIN, MIDDLE])),
        FakeResponse(data=_ok_payload([MIDDLE, DESTINATION])),
    )
    client = DirectionsClient(session=session, api_key="k", batch_size=2)

    result = client.fetch_route(ORIGIN, DESTINATION, [MIDDLE])

    assert len(session.calls) == 2
    assert "waypoints" not in session.calls[0][2]["params"]
    assert len(result.polyline) == 3
    assert result.polyline[-1].latitude == pytest.approx(DESTINATION.latitude)


def test_non_ok_status_raises() -> None:
    session = FakeSession(
        FakeResponse(data={"status": "ZERO_RESULTS", "routes": []})
    )
    client = DirectionsClient(session=session, api_key="k")

    with pytest.raises(NetworkFailureError, match="ZERO_RESULTS"):
        client.fetch_route(ORIGIN, DESTINATION)


def test_http_error_raises_with_provider_detail() -> None:
    session = FakeSession(
        FakeResponse(status_code=500, data={"error_message": "backend exploded"})
    )
    client = DirectionsClient(session=session, api_key="k")

    with pytest.raises(NetworkFailureError, match="backend exploded"):
        client.fetch_route(ORIGIN, DESTINATION)


def test_transport_error_is_wrapped() -> None:
    session = FakeSession(requests.ConnectionError("offline"))
    client = DirectionsClient(session=session, api_key="k")

    with pytest.raises(NetworkFailureError, match="offline"):
        client.fetch_route(ORIGIN, DESTINATION)


def test_malformed_step_raises_parse_failure() -> None:
    payload = _ok_payload([ORIGIN, DESTINATION], steps=[{"html_instructions": "?"}])
    client = DirectionsClient(session=FakeSession(FakeResponse(data=payload)), api_key="k")

    with pytest.raises(ParseFailureError):
        client.fetch_route(ORIGIN, DESTINATION)


def test_try_fetch_route_logs_and_returns_none(caplog) -> None:
    session = FakeSession(FakeResponse(data={"status": "REQUEST_DENIED"}))
    client = DirectionsClient(session=session, api_key="k")

    with caplog.at_level(logging.WARNING):
        assert try_fetch_route(client, [ORIGIN, DESTINATION]) is None

    assert "continuing without route" in caplog.text


def test_try_fetch_route_needs_two_points() -> None:
    client = DirectionsClient(session=FakeSession(), api_key="k")
    assert try_fetch_route(client, [ORIGIN]) is None


@pytest.mark.parametrize("distance", ["120 m", {"value": "far"}, {"value": [1]}])
def test_malformed_step_distance_raises_parse_failure(distance) -> None:
    step = _step(ORIGIN, DESTINATION, "Head north", 100)
    step["distance"] = distance
    payload = _ok_payload([ORIGIN, DESTINATION], steps=[step])
    client = DirectionsClient(session=FakeSession(FakeResponse(data=payload)), api_key="k")

    with pytest.raises(ParseFailureError, match="step distance"):
        client.fetch_route(ORIGIN, DESTINATION)
