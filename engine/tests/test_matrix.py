import httpx
import pytest

import matrix
from matrix import RoutingError, _haversine_m, get_distance_matrix, get_route, haversine_matrix
from models import Coordinate

AUSTIN = Coordinate(lat=30.2672, lng=-97.7431)
CAMPUS = Coordinate(lat=30.2849, lng=-97.7341)
EAST = Coordinate(lat=30.2620, lng=-97.7200)


def _fake_get(payload, calls=None):
    def fake(url, params=None, timeout=None):
        if calls is not None:
            calls.append((url, params))
        return httpx.Response(200, json=payload)

    return fake


def test_haversine_same_point():
    assert _haversine_m(30.2672, -97.7431, 30.2672, -97.7431) == 0


def test_haversine_known_distance():
    # downtown Austin to the UT campus, ~2.1 km
    dist = _haversine_m(30.2672, -97.7431, 30.2849, -97.7341)
    assert 2000 < dist < 2300


def test_haversine_symmetry():
    d1 = _haversine_m(30.2672, -97.7431, 30.2849, -97.7341)
    d2 = _haversine_m(30.2849, -97.7341, 30.2672, -97.7431)
    assert d1 == d2


def test_haversine_matrix_is_symmetric_with_zero_diagonal():
    result = haversine_matrix([AUSTIN, CAMPUS, EAST])
    assert result.ok
    for i in range(3):
        assert result.distances[i][i] == 0
        assert result.durations[i][i] == 0
    assert result.distances[0][1] == result.distances[1][0]
    assert result.durations[0][1] > 0


def test_haversine_matrix_leaves_unroutable_cells_empty():
    result = haversine_matrix([AUSTIN, None, Coordinate(lat=0, lng=0)])
    assert result.distances[0][1] is None
    assert result.distances[2][0] is None
    assert result.distances[1][1] == 0


def test_matrix_from_backend(monkeypatch):
    calls = []
    payload = {
        "code": "Ok",
        "distances": [[0, 2100], [2150, 0]],
        "durations": [[0, 300], [310, 0]],
    }
    monkeypatch.setattr(matrix.httpx, "get", _fake_get(payload, calls))

    result = get_distance_matrix([AUSTIN, CAMPUS], osrm_url="http://osrm.test")

    assert result.ok
    assert result.distances == [[0, 2100], [2150, 0]]
    assert result.durations[1][0] == 310
    url, params = calls[0]
    assert url == "http://osrm.test/table/v1/driving/-97.7431,30.2672;-97.7341,30.2849"
    assert params == {"annotations": "duration,distance"}


def test_matrix_skips_unroutable_points(monkeypatch):
    calls = []
    payload = {
        "code": "Ok",
        "distances": [[0, 2100], [2150, 0]],
        "durations": [[0, 300], [310, 0]],
    }
    monkeypatch.setattr(matrix.httpx, "get", _fake_get(payload, calls))

    result = get_distance_matrix([AUSTIN, None, CAMPUS], osrm_url="http://osrm.test")

    assert result.ok
    assert "-97.7431,30.2672;-97.7341,30.2849" in calls[0][0]
    assert result.distances[0][2] == 2100
    assert result.distances[2][0] == 2150
    assert result.distances[0][1] is None
    assert result.durations[1][2] is None


def test_matrix_backend_error_is_reported_not_fabricated(monkeypatch):
    monkeypatch.setattr(
        matrix.httpx, "get", _fake_get({"code": "InvalidQuery", "message": "bad coords"})
    )

    result = get_distance_matrix([AUSTIN, CAMPUS], osrm_url="http://osrm.test")

    assert not result.ok
    assert result.error == "bad coords"
    assert result.distances == []


def test_matrix_unreachable_backend():
    # port out of range: httpx fails before any network traffic
    result = get_distance_matrix([AUSTIN, CAMPUS], osrm_url="http://localhost:99999")
    assert not result.ok


def test_matrix_single_point_makes_no_call(monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("backend should not be called")

    monkeypatch.setattr(matrix.httpx, "get", boom)
    result = get_distance_matrix([AUSTIN, None])
    assert result.ok
    assert result.distances == [[0.0, None], [None, 0.0]]


def test_get_route_normalizes_payload(monkeypatch):
    payload = {
        "code": "Ok",
        "routes": [
            {
                "distance": 4000,
                "duration": 540,
                "legs": [{"distance": 2100, "duration": 300}, {"distance": 1900, "duration": 240}],
            }
        ],
    }
    monkeypatch.setattr(matrix.httpx, "get", _fake_get(payload))

    route = get_route([AUSTIN, CAMPUS, EAST], osrm_url="http://osrm.test")

    assert route["distance"] == 4000
    assert [leg["duration"] for leg in route["legs"]] == [300, 240]


def test_get_route_without_routes_raises(monkeypatch):
    monkeypatch.setattr(matrix.httpx, "get", _fake_get({"code": "Ok", "routes": []}))
    with pytest.raises(RoutingError):
        get_route([AUSTIN, CAMPUS], osrm_url="http://osrm.test")


def test_get_route_needs_two_points():
    with pytest.raises(RoutingError):
        get_route([AUSTIN])


@pytest.mark.parametrize("routes", [{"x": 1}, 5, "abc", [None], [{"distance": 1.0, "duration": 2.0, "legs": 7}]])
def test_get_route_garbage_routes_raises_routing_error(monkeypatch, routes):
    monkeypatch.setattr(matrix.httpx, "get", _fake_get({"code": "Ok", "routes": routes}))
    with pytest.raises(RoutingError):
        get_route([AUSTIN, CAMPUS], osrm_url="http://osrm.test")
