import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from navigation.tracker.geo_utils import polyline_length  # noqa: E402
from navigation.tracker.models import Coord, RouteLeg, RouteStep  # noqa: E402
from navigation.tracker.worker import BackgroundWorker  # noqa: E402


def make_leg(points, step_breaks=None, distance_m=None, duration_s=600.0, instructions=None):
    """Build a leg whose steps split the polyline at the given vertex indices."""
    coords = tuple(Coord(lat, lon) for lat, lon in points)
    breaks = step_breaks or [len(coords) - 1]
    steps = []
    start = 0
    for i, end in enumerate(breaks):
        poly = coords[start:end + 1]
        text = instructions[i] if instructions else ""
        steps.append(RouteStep(polyline=poly, distance_m=polyline_length(poly), instructions=text))
        start = end
    total = distance_m if distance_m is not None else sum(s.distance_m for s in steps)
    return RouteLeg(polyline=coords, steps=tuple(steps), distance_m=total, expected_travel_time_s=duration_s)


@pytest.fixture
def leg_factory():
    return make_leg


@pytest.fixture
def straight_leg():
    """~1.11 km along the equator with a single step."""
    coords = (Coord(0.0, 0.0), Coord(0.0, 0.01))
    step = RouteStep(polyline=coords, distance_m=1110.0, instructions="Head east")
    return RouteLeg(polyline=coords, steps=(step,), distance_m=1110.0, expected_travel_time_s=600.0)


@pytest.fixture
def l_shaped_leg():
    """Three ~222 m steps: east, north, east."""
    return make_leg(
        [(0.0, 0.0), (0.0, 0.002), (0.002, 0.002), (0.002, 0.004)],
        step_breaks=[1, 2, 3],
        duration_s=480.0,
        instructions=["Head east", "Turn left", "Turn right"],
    )


@pytest.fixture
def worker():
    w = BackgroundWorker(name="test-worker")
    yield w
    w.close()
