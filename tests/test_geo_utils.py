import math

import pytest

from navigation.tracker.geo_utils import (
    as_polyline,
    coord_distance,
    distance_to_polylines,
    haversine_distance,
    nearest_point_on_polyline,
    nearest_point_on_polylines,
    nearest_point_on_segment,
    polyline_length,
    split_route_at,
)
from navigation.tracker.models import Coord

# One hundredth of a degree along the equator.
CENTI_DEGREE_M = 6_371_000.0 * math.radians(0.01)

L_ROUTE = [Coord(0.0, 0.0), Coord(0.0, 0.002), Coord(0.002, 0.002), Coord(0.002, 0.004)]


def test_haversine_matches_equatorial_arc():
    assert haversine_distance(0.0, 0.0, 0.0, 0.01) == pytest.approx(CENTI_DEGREE_M)
    assert coord_distance(Coord(0.0, 0.0), Coord(0.01, 0.0)) == pytest.approx(CENTI_DEGREE_M)


def test_nearest_point_on_segment_projects_inside():
    point, dist = nearest_point_on_segment(Coord(0.001, 0.005), Coord(0.0, 0.0), Coord(0.0, 0.01))
    assert point.lat == pytest.approx(0.0)
    assert point.lon == pytest.approx(0.005)
    assert dist == pytest.approx(CENTI_DEGREE_M / 10, rel=1e-6)


def test_nearest_point_on_segment_clamps_to_end():
    point, _ = nearest_point_on_segment(Coord(0.0, 0.02), Coord(0.0, 0.0), Coord(0.0, 0.01))
    assert point == Coord(0.0, 0.01)


def test_degenerate_segment_projects_to_start():
    start = Coord(1.0, 1.0)
    point, dist = nearest_point_on_segment(Coord(1.001, 1.0), start, start)
    assert point == start
    assert dist > 0


def test_nearest_point_on_polyline_degenerate_inputs():
    probe = Coord(0.5, 0.5)
    assert nearest_point_on_polyline(probe, []) == (probe, 0.0)

    only = Coord(0.5, 0.6)
    point, dist = nearest_point_on_polyline(probe, [only])
    assert point == only
    assert dist == pytest.approx(coord_distance(probe, only))


def test_nearest_point_on_polyline_picks_closest_segment():
    point, dist = nearest_point_on_polyline(Coord(0.001, 0.0021), L_ROUTE)
    assert point.lat == pytest.approx(0.001)
    assert point.lon == pytest.approx(0.002)
    assert dist == pytest.approx(coord_distance(Coord(0.001, 0.0021), Coord(0.001, 0.002)), rel=1e-6)


def test_nearest_point_on_polylines_across_legs():
    near = [Coord(0.0, 0.0), Coord(0.0, 0.01)]
    far = [Coord(1.0, 0.0), Coord(1.0, 0.01)]
    point, _ = nearest_point_on_polylines(Coord(0.0001, 0.003), [far, near])
    assert point.lat == pytest.approx(0.0)
    assert point.lon == pytest.approx(0.003)


def test_distance_to_polylines_takes_minimum():
    near = [Coord(0.0, 0.0), Coord(0.0, 0.01)]
    far = [Coord(1.0, 0.0), Coord(1.0, 0.01)]
    dist = distance_to_polylines(Coord(0.001, 0.005), [far, near])
    assert dist == pytest.approx(CENTI_DEGREE_M / 10, rel=1e-6)


def test_no_polylines():
    assert nearest_point_on_polylines(Coord(0.0, 0.0), []) is None
    assert distance_to_polylines(Coord(0.0, 0.0), []) == math.inf


@pytest.mark.parametrize(
    "snapped",
    [
        Coord(0.0, 0.0),
        Coord(0.0, 0.001),
        Coord(0.0, 0.002),
        Coord(0.001, 0.002),
        Coord(0.002, 0.003),
        Coord(0.002, 0.004),
    ],
)
def test_split_reconstructs_route(snapped):
    completed, remaining = split_route_at(snapped, L_ROUTE)
    assert completed[-1] == snapped
    assert remaining[0] == snapped
    assert completed[:-1] + remaining[1:] == L_ROUTE


def test_split_mid_segment():
    completed, remaining = split_route_at(Coord(0.001, 0.002), L_ROUTE)
    assert completed == [Coord(0.0, 0.0), Coord(0.0, 0.002), Coord(0.001, 0.002)]
    assert remaining == [Coord(0.001, 0.002), Coord(0.002, 0.002), Coord(0.002, 0.004)]


def test_split_degenerate_inputs():
    snapped = Coord(0.3, 0.3)
    assert split_route_at(snapped, [Coord(0.0, 0.0)]) == ([snapped], [snapped])
    assert split_route_at(snapped, []) == ([], [])


def test_as_polyline_requires_two_points():
    assert as_polyline([]) is None
    assert as_polyline([Coord(0.0, 0.0)]) is None
    assert as_polyline(L_ROUTE[:2]) == tuple(L_ROUTE[:2])


def test_polyline_length():
    assert polyline_length([]) == 0.0
    assert polyline_length([Coord(0.0, 0.0)]) == 0.0
    assert polyline_length([Coord(0.0, 0.0), Coord(0.0, 0.01)]) == pytest.approx(CENTI_DEGREE_M)
    expected = sum(coord_distance(a, b) for a, b in zip(L_ROUTE, L_ROUTE[1:]))
    assert polyline_length(L_ROUTE) == pytest.approx(expected)
