from datetime import datetime, timedelta

import pytest

from navigation.tracker.models import (
    Coord,
    InstructionTiming,
    LocationFix,
    OffRoute,
    OnRoute,
    RouteLeg,
    RouteStatus,
    RouteStep,
    TravelMode,
)
from navigation.tracker.nav_config import NavConfig
from navigation.tracker.route_tracker import RouteTracker, format_instruction

FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0)


def fix(lat, lon):
    return LocationFix(coord=Coord(lat, lon))


class RecalcRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, origin, destination, mode):
        self.calls.append((origin, destination, mode))


@pytest.fixture
def tracker():
    return RouteTracker(NavConfig(), clock=lambda: FIXED_NOW)


# ---------------------------------------------------------------------------
# Start / initial metrics
# ---------------------------------------------------------------------------

def test_start_populates_metrics_before_first_fix(tracker, straight_leg):
    assert tracker.start([straight_leg], TravelMode.WALK, start_location=Coord(0.0, 0.0))

    snap = tracker.snapshot()
    assert snap.active
    assert snap.remaining_distance_m == pytest.approx(1110.0)
    assert snap.remaining_time_s == pytest.approx(600.0)
    assert snap.emission_estimate_g == 0
    assert snap.eta == FIXED_NOW + timedelta(seconds=600)
    assert snap.current_instruction == "Head east"
    assert snap.next_instruction is None
    assert not snap.is_off_route


def test_start_without_legs_stays_inactive(tracker):
    assert not tracker.start([], TravelMode.CAR)
    assert not tracker.is_active


def test_midpoint_update_halves_remaining(tracker, straight_leg):
    tracker.start([straight_leg], TravelMode.WALK, start_location=Coord(0.0, 0.0))
    result = tracker.update_location(fix(0.0, 0.005))

    assert result.status is RouteStatus.PROGRESSING
    snap = result.snapshot
    assert snap.remaining_distance_m == pytest.approx(555, rel=0.01)
    assert snap.remaining_time_s == pytest.approx(300, rel=0.01)
    assert snap.snapped_location.lon == pytest.approx(0.005)
    assert snap.completed_polyline[0] == Coord(0.0, 0.0)
    assert snap.remaining_polyline[-1] == Coord(0.0, 0.01)
    assert snap.instruction_timing is InstructionTiming.NONE


def test_car_emission_estimate_tracks_remaining(tracker, straight_leg):
    tracker.start([straight_leg], TravelMode.CAR, start_location=Coord(0.0, 0.0))
    snap = tracker.update_location(fix(0.0, 0.005)).snapshot
    assert snap.emission_estimate_g == pytest.approx(210 * snap.remaining_distance_m / 1000)


def test_zero_distance_route_has_no_remaining_time(tracker):
    coords = (Coord(0.0, 0.0), Coord(0.0, 0.01))
    leg = RouteLeg(polyline=coords, steps=(RouteStep(coords, 0.0),), distance_m=0.0, expected_travel_time_s=600.0)
    tracker.start([leg], TravelMode.WALK)
    snap = tracker.snapshot()
    assert snap.remaining_time_s == 0
    assert snap.eta is None


# ---------------------------------------------------------------------------
# Off-route
# ---------------------------------------------------------------------------

def test_off_route_then_recalculated(tracker, straight_leg):
    recalc = RecalcRecorder()
    tracker.start([straight_leg], TravelMode.WALK, start_location=Coord(0.0, 0.0))

    result = tracker.update_location(fix(0.001, 0.005), recalc)

    assert result.status is RouteStatus.OFF_ROUTE
    assert tracker.is_off_route
    assert isinstance(tracker.state, OffRoute)
    assert recalc.calls == [(Coord(0.001, 0.005), Coord(0.0, 0.01), TravelMode.WALK)]

    detour = RouteLeg(
        polyline=(Coord(0.001, 0.005), Coord(0.0, 0.01)),
        steps=(RouteStep((Coord(0.001, 0.005), Coord(0.0, 0.01)), 570.0, "Rejoin route"),),
        distance_m=570.0,
        expected_travel_time_s=300.0,
    )
    assert tracker.apply_legs([detour])
    assert not tracker.is_off_route
    assert isinstance(tracker.state, OnRoute)
    assert tracker.snapshot().completed_polyline is None


def test_off_route_recalc_fires_exactly_once(tracker, straight_leg):
    recalc = RecalcRecorder()
    tracker.start([straight_leg], TravelMode.WALK, start_location=Coord(0.0, 0.0))

    tracker.update_location(fix(0.0, 0.002), recalc)        # on the route
    tracker.update_location(fix(0.0003, 0.002), recalc)     # ~33 m, still on route
    assert recalc.calls == []

    tracker.update_location(fix(0.00072, 0.002), recalc)    # ~80 m
    for _ in range(5):
        tracker.update_location(fix(0.00072, 0.002), recalc)

    assert len(recalc.calls) == 1
    assert tracker.is_off_route


def test_returning_to_route_keeps_off_route_until_replaced(tracker, straight_leg):
    tracker.start([straight_leg], TravelMode.WALK)
    tracker.update_location(fix(0.001, 0.005))
    tracker.update_location(fix(0.0, 0.0055))
    assert tracker.is_off_route


# ---------------------------------------------------------------------------
# Periodic recalculation
# ---------------------------------------------------------------------------

def test_periodic_recalc_after_moving_along_route(tracker, straight_leg):
    recalc = RecalcRecorder()
    tracker.start([straight_leg], TravelMode.WALK)

    tracker.update_location(fix(0.0, 0.001), recalc)    # anchors the recalc origin
    tracker.update_location(fix(0.0, 0.0015), recalc)   # ~56 m
    assert recalc.calls == []

    tracker.update_location(fix(0.0, 0.002), recalc)    # ~111 m from anchor
    assert len(recalc.calls) == 1
    assert recalc.calls[0][0] == Coord(0.0, 0.002)

    tracker.update_location(fix(0.0, 0.0025), recalc)   # ~56 m from new anchor
    assert len(recalc.calls) == 1


# ---------------------------------------------------------------------------
# Step advancement
# ---------------------------------------------------------------------------

def test_step_index_is_monotonic(tracker, l_shaped_leg):
    tracker.start([l_shaped_leg], TravelMode.BIKE)
    path = [
        (0.0, 0.0005),
        (0.0, 0.0017),       # within 35 m of the first turn
        (0.00005, 0.0012),   # GPS noise back towards the first step
        (0.001, 0.002),
        (0.002, 0.0025),
    ]
    indices = [tracker.update_location(fix(*p)).snapshot.current_step_index for p in path]

    assert indices == [0, 1, 1, 1, 2]
    assert indices == sorted(indices)


def test_advance_reports_step_and_next_instruction(tracker, l_shaped_leg):
    tracker.start([l_shaped_leg], TravelMode.WALK)
    result = tracker.update_location(fix(0.0, 0.0018))

    assert result.status is RouteStatus.STEP_ADVANCED
    assert result.message == "Turn left"
    assert result.snapshot.next_instruction == "Turn right"


def test_advances_at_most_one_step_per_fix(tracker, leg_factory):
    # Two tiny steps whose ends are both within the advance radius.
    leg = leg_factory([(0.0, 0.0), (0.0, 0.0001), (0.0, 0.0002), (0.0, 0.01)], step_breaks=[1, 2, 3])
    tracker.start([leg], TravelMode.WALK)
    assert tracker.update_location(fix(0.0, 0.0001)).snapshot.current_step_index == 1
    assert tracker.update_location(fix(0.0, 0.0001)).snapshot.current_step_index == 2


def test_instruction_timing_tiers(tracker, l_shaped_leg):
    tracker.start([l_shaped_leg], TravelMode.WALK)
    # first step ends at (0, 0.002); ~222 m long
    assert tracker.update_location(fix(0.0, 0.0)).snapshot.instruction_timing is InstructionTiming.PREPARE
    assert tracker.update_location(fix(0.0, 0.001)).snapshot.instruction_timing is InstructionTiming.UPCOMING
    snap = tracker.update_location(fix(0.0, 0.0016)).snapshot
    assert snap.instruction_timing is InstructionTiming.NOW
    assert snap.distance_to_next_maneuver_m == pytest.approx(44.5, abs=1.0)


def test_fallback_instruction_text():
    short = RouteStep(polyline=(), distance_m=80.0)
    long = RouteStep(polyline=(), distance_m=1234.0)
    assert format_instruction(short) == "Continue for 80 m"
    assert format_instruction(long) == "Continue for 1.2 km"
    assert format_instruction(RouteStep((), 10.0, "Turn left")) == "Turn left"


# ---------------------------------------------------------------------------
# Arrival / teardown
# ---------------------------------------------------------------------------

def test_arrival_clears_session(tracker, straight_leg):
    tracker.start([straight_leg], TravelMode.CAR, start_location=Coord(0.0, 0.0))
    result = tracker.update_location(fix(0.0, 0.0099))

    assert result.status is RouteStatus.ARRIVED
    assert not tracker.is_active
    assert result.trip is not None
    assert result.trip.distance_km == pytest.approx(1.1008, abs=1e-3)
    assert result.trip.carbon_grams == pytest.approx(210 * result.trip.distance_km)
    assert result.trip.reason == "Trip 1.10 km"
    assert result.snapshot.trip_summary == result.trip
    assert result.snapshot.remaining_distance_m == 0
    assert tracker.snapshot().remaining_distance_m == 0


def test_finish_without_split_uses_straight_line(tracker, straight_leg):
    tracker.start([straight_leg], TravelMode.WALK, start_location=Coord(0.0, 0.0))
    trip = tracker.finish(Coord(0.0, 0.001))
    assert trip.distance_km == pytest.approx(0.1112, abs=1e-3)
    assert trip.carbon_grams == 0
    assert tracker.finish(Coord(0.0, 0.001)) is None


def test_inactive_tracker_ignores_updates(tracker):
    result = tracker.update_location(fix(0.0, 0.0))
    assert result.status is RouteStatus.INACTIVE
    assert not result.snapshot.active
    tracker.update_heading(90.0)
    assert tracker.snapshot().heading is None


def test_apply_legs_ignored_when_inactive_or_empty(tracker, straight_leg):
    assert not tracker.apply_legs([straight_leg])
    assert not tracker.is_active

    tracker.start([straight_leg], TravelMode.WALK)
    assert not tracker.apply_legs([])
    assert tracker.steps == list(straight_leg.steps)


def test_apply_legs_clamps_step_index(tracker, l_shaped_leg, straight_leg):
    tracker.start([l_shaped_leg], TravelMode.WALK)
    tracker.update_location(fix(0.0, 0.0018))
    tracker.update_location(fix(0.0019, 0.002))
    assert tracker.current_step_index == 2

    tracker.apply_legs([straight_leg])
    assert tracker.current_step_index == 1
    assert tracker.snapshot().current_instruction == "Navigation complete"


def test_multi_leg_destination_and_steps(tracker, straight_leg, leg_factory):
    second = leg_factory([(0.0, 0.01), (0.005, 0.01)])
    tracker.start([straight_leg, second], TravelMode.WALK)
    assert tracker.destination == Coord(0.005, 0.01)
    assert len(tracker.steps) == 2
    # At the end of the first leg: no arrival, second leg remains.
    result = tracker.update_location(fix(0.0, 0.0099))
    assert result.status is RouteStatus.STEP_ADVANCED
    assert tracker.is_active


def test_heading_is_stored(tracker, straight_leg):
    tracker.start([straight_leg], TravelMode.WALK)
    tracker.update_heading(271.5)
    assert tracker.snapshot().heading == 271.5
