# models.py
# Shared data structures and enums used across all modules.

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union


# ---------------------------------------------------------------------------
# Coordinate / location fixes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}

    @staticmethod
    def from_dict(d: dict) -> "Coord":
        return Coord(float(d["lat"]), float(d["lon"]))


@dataclass(frozen=True)
class LocationFix:
    """A single device location fix. Accuracy and timestamp are carried, never inspected."""
    coord: Coord
    accuracy_m: Optional[float] = None
    timestamp: Optional[float] = None


Polyline = Tuple[Coord, ...]


def _polyline_to_list(polyline: Polyline) -> List[dict]:
    return [c.to_dict() for c in polyline]


def _polyline_from_list(items: List[dict]) -> Polyline:
    return tuple(Coord.from_dict(c) for c in items)


# ---------------------------------------------------------------------------
# Route geometry supplied by the directions service
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteStep:
    """A sub-segment of a leg with its own polyline and instruction."""
    polyline: Polyline
    distance_m: float
    instructions: str = ""          # may be empty; a fallback is synthesized

    @property
    def end(self) -> Optional[Coord]:
        return self.polyline[-1] if self.polyline else None

    def to_dict(self) -> dict:
        return {
            "polyline": _polyline_to_list(self.polyline),
            "distance_m": self.distance_m,
            "instructions": self.instructions,
        }

    @staticmethod
    def from_dict(d: dict) -> "RouteStep":
        return RouteStep(
            polyline=_polyline_from_list(d.get("polyline", [])),
            distance_m=float(d["distance_m"]),
            instructions=d.get("instructions", ""),
        )


@dataclass(frozen=True)
class RouteLeg:
    """One leg of a route: polyline, ordered steps, totals."""
    polyline: Polyline
    steps: Tuple[RouteStep, ...]
    distance_m: float
    expected_travel_time_s: float

    def to_dict(self) -> dict:
        return {
            "polyline": _polyline_to_list(self.polyline),
            "steps": [s.to_dict() for s in self.steps],
            "distance_m": self.distance_m,
            "expected_travel_time_s": self.expected_travel_time_s,
        }

    @staticmethod
    def from_dict(d: dict) -> "RouteLeg":
        return RouteLeg(
            polyline=_polyline_from_list(d["polyline"]),
            steps=tuple(RouteStep.from_dict(s) for s in d.get("steps", [])),
            distance_m=float(d["distance_m"]),
            expected_travel_time_s=float(d["expected_travel_time_s"]),
        )


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TravelMode(Enum):
    WALK    = "walk"
    BIKE    = "bike"
    CAR     = "car"
    TRANSIT = "transit"

    @property
    def emission_key(self) -> str:
        """Key into the emission/speed/cost tables."""
        return "bus" if self is TravelMode.TRANSIT else self.value


class InstructionTiming(Enum):
    NONE     = "none"        # > prepare distance to next maneuver
    PREPARE  = "prepare"
    UPCOMING = "upcoming"
    NOW      = "now"


class RouteStatus(Enum):
    INACTIVE      = "inactive"
    PROGRESSING   = "progressing"
    STEP_ADVANCED = "step_advanced"
    OFF_ROUTE     = "off_route"
    ARRIVED       = "arrived"


# ---------------------------------------------------------------------------
# Trip completion
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TripSummary:
    """Published once on arrival until the UI clears it."""
    distance_km: float
    carbon_grams: float
    mode: str

    @property
    def reason(self) -> str:
        return f"Trip {self.distance_km:.2f} km"


# ---------------------------------------------------------------------------
# Session state: Inactive | OnRoute | OffRoute
# ---------------------------------------------------------------------------

@dataclass
class ActiveSession:
    """Mutable per-trip state. Only ever reachable through OnRoute/OffRoute."""
    legs: List[RouteLeg]
    steps: List[RouteStep]
    travel_mode: TravelMode
    waypoints: List[Coord] = field(default_factory=list)
    current_step_index: int = 0
    trip_start: Optional[Coord] = None
    last_location: Optional[Coord] = None
    last_heading: Optional[float] = None
    snapped_location: Optional[Coord] = None
    completed_polyline: Optional[Polyline] = None
    remaining_polyline: Optional[Polyline] = None
    last_recalc_location: Optional[Coord] = None

    # Derived on every update
    remaining_distance_m: float = 0.0
    remaining_time_s: float = 0.0
    eta: Optional[datetime] = None
    instruction_timing: InstructionTiming = InstructionTiming.NONE
    distance_to_next_maneuver_m: Optional[float] = None
    emission_estimate_g: float = 0.0

    @property
    def polylines(self) -> List[Polyline]:
        return [leg.polyline for leg in self.legs]

    @property
    def current_step(self) -> Optional[RouteStep]:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None


@dataclass(frozen=True)
class Inactive:
    pass


@dataclass(frozen=True)
class OnRoute:
    session: ActiveSession


@dataclass(frozen=True)
class OffRoute:
    session: ActiveSession
    since: Coord                    # fix that triggered the transition


SessionState = Union[Inactive, OnRoute, OffRoute]

INACTIVE = Inactive()


# ---------------------------------------------------------------------------
# Published snapshot / per-update result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NavigationSnapshot:
    """Read-only UI view of the tracker after an update."""
    active: bool = False
    travel_mode: Optional[TravelMode] = None
    current_instruction: Optional[str] = None
    next_instruction: Optional[str] = None
    current_step_index: int = 0
    step_count: int = 0
    remaining_distance_m: float = 0.0
    remaining_time_s: float = 0.0
    eta: Optional[datetime] = None
    is_off_route: bool = False
    instruction_timing: InstructionTiming = InstructionTiming.NONE
    distance_to_next_maneuver_m: Optional[float] = None
    emission_estimate_g: float = 0.0
    emission_estimate_text: str = "0 g CO₂"
    snapped_location: Optional[Coord] = None
    heading: Optional[float] = None
    completed_polyline: Optional[Polyline] = None
    remaining_polyline: Optional[Polyline] = None
    trip_summary: Optional[TripSummary] = None


@dataclass
class ProgressResult:
    """Returned by RouteTracker.update_location() every GPS update."""
    status: RouteStatus
    message: str
    snapshot: NavigationSnapshot
    trip: Optional[TripSummary] = None
