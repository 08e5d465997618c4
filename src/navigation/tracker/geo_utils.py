# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no imports from other project modules except models.
#
# Distances are great-circle (haversine). Projection onto a segment is planar
# in lat/lon degrees, which is accurate enough at street scale.

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import Coord, Polyline


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def coord_distance(a: Coord, b: Coord) -> float:
    """Great-circle distance between two Coords in metres."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def haversine_array(lat1, lon1, lat2, lon2) -> np.ndarray:
    """Vectorised haversine; accepts scalars or equally shaped arrays (degrees)."""
    lat1, lon1, lat2, lon2 = (np.radians(np.asarray(v, dtype=float)) for v in (lat1, lon1, lat2, lon2))
    a = (
        np.sin((lat2 - lat1) / 2) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def _to_array(coords: Sequence[Coord]) -> np.ndarray:
    return np.array([(c.lat, c.lon) for c in coords], dtype=float).reshape(-1, 2)


def _project_onto_segments(point: Coord, pts: np.ndarray) -> Tuple[int, np.ndarray, float]:
    """
    Project point onto every segment pts[i] → pts[i+1].

    Returns:
        (segment index, projected [lat, lon], distance in metres) of the nearest one.
        Ties resolve to the lowest index.
    """
    starts = pts[:-1]
    deltas = pts[1:] - starts
    p = np.array([point.lat, point.lon], dtype=float)

    len_sq = np.einsum("ij,ij->i", deltas, deltas)
    dot = np.einsum("ij,ij->i", p - starts, deltas)
    t = np.zeros_like(len_sq)
    nonzero = len_sq > 0
    t[nonzero] = np.clip(dot[nonzero] / len_sq[nonzero], 0.0, 1.0)

    projected = starts + t[:, None] * deltas
    dists = haversine_array(p[0], p[1], projected[:, 0], projected[:, 1])
    idx = int(np.argmin(dists))
    return idx, projected[idx], float(dists[idx])


# ---------------------------------------------------------------------------
# Nearest point queries
# ---------------------------------------------------------------------------

def nearest_point_on_segment(point: Coord, seg_start: Coord, seg_end: Coord) -> Tuple[Coord, float]:
    """
    Project point onto the segment seg_start → seg_end.

    t = clamp(dot / len_sq, 0, 1); a zero-length segment projects to seg_start.

    Returns:
        (projected point, great-circle distance in metres)
    """
    c = seg_end.lat - seg_start.lat
    d = seg_end.lon - seg_start.lon
    len_sq = c * c + d * d
    t = 0.0
    if len_sq > 0:
        dot = (point.lat - seg_start.lat) * c + (point.lon - seg_start.lon) * d
        t = max(0.0, min(1.0, dot / len_sq))
    nearest = Coord(seg_start.lat + t * c, seg_start.lon + t * d)
    return nearest, coord_distance(point, nearest)


def nearest_point_on_polyline(point: Coord, polyline: Sequence[Coord]) -> Tuple[Coord, float]:
    """
    Nearest point on any segment of polyline.

    A single-point polyline returns that point; an empty one returns
    (point, 0.0) so it contributes no distance.
    """
    if not polyline:
        return point, 0.0
    if len(polyline) == 1:
        return polyline[0], coord_distance(point, polyline[0])

    _, projected, dist = _project_onto_segments(point, _to_array(polyline))
    return Coord(float(projected[0]), float(projected[1])), dist


def nearest_point_on_polylines(
    point: Coord, polylines: Sequence[Sequence[Coord]]
) -> Optional[Tuple[Coord, float]]:
    """Nearest point across several polylines (multi-leg route). None if none supplied."""
    best: Optional[Tuple[Coord, float]] = None
    for polyline in polylines:
        candidate = nearest_point_on_polyline(point, polyline)
        if best is None or candidate[1] < best[1]:
            best = candidate
    return best


def distance_to_polylines(point: Coord, polylines: Sequence[Sequence[Coord]]) -> float:
    """Minimum distance in metres from point to any polyline (inf when none)."""
    nearest = nearest_point_on_polylines(point, polylines)
    return nearest[1] if nearest is not None else math.inf


# ---------------------------------------------------------------------------
# Route splitting / measuring
# ---------------------------------------------------------------------------

def split_route_at(snapped: Coord, coordinates: Sequence[Coord]) -> Tuple[List[Coord], List[Coord]]:
    """
    Split a route into travelled / remaining halves at a snapped point.

    The snapped point is the last vertex of `completed` and the first of
    `remaining`; every input vertex appears in exactly one half.

    Returns:
        (completed, remaining) coordinate lists.
    """
    if len(coordinates) < 2:
        if len(coordinates) == 1:
            return [snapped], [snapped]
        return [], []

    idx, _, _ = _project_onto_segments(snapped, _to_array(coordinates))
    completed = list(coordinates[: idx + 1]) + [snapped]
    remaining = [snapped] + list(coordinates[idx + 1:])
    return completed, remaining


def as_polyline(coordinates: Sequence[Coord]) -> Optional[Polyline]:
    """Fewer than two points means no geometry to render or measure."""
    if len(coordinates) < 2:
        return None
    return tuple(coordinates)


def polyline_length(coordinates: Sequence[Coord]) -> float:
    """Sum of consecutive great-circle distances in metres; 0 for < 2 points."""
    if len(coordinates) < 2:
        return 0.0
    pts = _to_array(coordinates)
    return float(np.sum(haversine_array(pts[:-1, 0], pts[:-1, 1], pts[1:, 0], pts[1:, 1])))
