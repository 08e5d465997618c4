# emissions.py
# Static emission / speed / cost tables per transport mode and derived values.
# Factors are tuned for Indian urban travel; costs are in INR.

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

# grams CO2 per passenger-km (freight_* modes: per tonne-km)
EMISSION_FACTORS: Dict[str, float] = {
    "walk":          0.0,
    "bike":          0.0,
    "bus":           82.0,     # city buses, high occupancy
    "train":         35.0,     # mostly electric rail
    "metro":         28.0,
    "car":           210.0,    # petrol/diesel mix, congestion
    "rideshare":     210.0,
    "auto":          120.0,    # auto-rickshaw
    "freight_truck": 70.0,
    "freight_rail":  18.0,
    "freight_ship":  9.0,
    "freight_air":   540.0,
}

# km/h, only for standalone travel-time estimates
AVERAGE_SPEEDS_KMH: Dict[str, float] = {
    "walk":      4.5,
    "bike":      14.0,
    "bus":       18.0,
    "train":     65.0,
    "metro":     35.0,
    "car":       30.0,
    "rideshare": 30.0,
    "auto":      25.0,
}
DEFAULT_SPEED_KMH: float = 30.0

# (per-km rate, base fare) in INR
COST_FACTORS: Dict[str, Tuple[float, float]] = {
    "walk":      (0.0, 0.0),
    "bike":      (2.0, 0.0),       # bicycle rentals
    "bus":       (1.5, 15.0),
    "train":     (1.0, 30.0),
    "metro":     (2.0, 25.0),
    "auto":      (12.0, 30.0),
    "car":       (8.5, 0.0),       # fuel + maintenance
    "rideshare": (14.0, 40.0),
}

RIDE_HAILING_MODES = frozenset({"rideshare"})
PEAK_SURGE_MULTIPLIER: float = 1.4

GRAMS_PER_CREDIT: float = 100.0

DEFAULT_COMPARISON_MODES: Tuple[str, ...] = (
    "walk", "bike", "bus", "metro", "train", "auto", "car", "rideshare",
)


# ---------------------------------------------------------------------------
# Emissions
# ---------------------------------------------------------------------------

def emissions_grams(mode: str, distance_km: float) -> float:
    """Passenger emissions in grams CO2 (0 for unknown modes)."""
    return EMISSION_FACTORS.get(mode, 0.0) * distance_km


def freight_emissions_grams(mode: str, weight_kg: float, distance_km: float) -> float:
    """Freight emissions in grams CO2 from a per tonne-km factor."""
    return EMISSION_FACTORS.get(mode, 0.0) * (weight_kg / 1000.0) * distance_km


def carbon_credits(saved_grams: float) -> int:
    """One credit per 100 g CO2 saved; never negative."""
    return max(0, math.floor(saved_grams / GRAMS_PER_CREDIT))


# ---------------------------------------------------------------------------
# Time / cost
# ---------------------------------------------------------------------------

def travel_time_minutes(mode: str, distance_km: float) -> float:
    speed = AVERAGE_SPEEDS_KMH.get(mode, DEFAULT_SPEED_KMH)
    return (distance_km / speed) * 60.0


def trip_cost(mode: str, distance_km: float, peak_hour: bool = False) -> float:
    """Base fare plus per-km rate; ride-hailing surges in peak hour."""
    factors = COST_FACTORS.get(mode)
    if factors is None:
        return 0.0
    per_km, base_fare = factors
    cost = base_fare + per_km * distance_km
    if peak_hour and mode in RIDE_HAILING_MODES:
        cost *= PEAK_SURGE_MULTIPLIER
    return cost


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_emissions(grams: float) -> str:
    if grams >= 1000:
        return f"{grams / 1000:.2f} kg CO₂"
    return f"{grams:.0f} g CO₂"


def format_cost(amount: float) -> str:
    return f"₹{amount:.0f}"


# ---------------------------------------------------------------------------
# Mode comparison
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteOption:
    """One row of a per-mode comparison for the same trip distance."""
    mode: str
    duration_minutes: int
    cost: float
    emissions_grams: float
    distance_km: float


def compare_modes(
    distance_km: float,
    modes: Iterable[str] = DEFAULT_COMPARISON_MODES,
    peak_hour: bool = False,
) -> List[RouteOption]:
    """Estimate time, cost and emissions for each mode, cleanest first."""
    options = [
        RouteOption(
            mode=mode,
            duration_minutes=int(round(travel_time_minutes(mode, distance_km))),
            cost=trip_cost(mode, distance_km, peak_hour=peak_hour),
            emissions_grams=emissions_grams(mode, distance_km),
            distance_km=distance_km,
        )
        for mode in modes
    ]
    return sorted(options, key=lambda o: (o.emissions_grams, o.duration_minutes))
