# route_tracker.py
# State machine that tracks a user's position against an active route.
# Call start() once, then update_location() on every GPS fix.

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from .emissions import emissions_grams, format_emissions
from .geo_utils import (
    as_polyline,
    coord_distance,
    nearest_point_on_polyline,
    nearest_point_on_polylines,
    polyline_length,
    split_route_at,
)
from .models import (
    INACTIVE,
    ActiveSession,
    Coord,
    InstructionTiming,
    LocationFix,
    NavigationSnapshot,
    OffRoute,
    OnRoute,
    ProgressResult,
    RouteLeg,
    RouteStatus,
    RouteStep,
    SessionState,
    TravelMode,
    TripSummary,
)
from .nav_config import NavConfig

logger = logging.getLogger(__name__)

# (origin, destination, mode) → fire-and-forget recalculation request
RecalcHandler = Callable[[Coord, Coord, TravelMode], None]


def format_instruction(step: RouteStep) -> str:
    """Vendor instruction text, or a distance-based fallback when it is empty."""
    if step.instructions:
        return step.instructions
    if step.distance_m < 100:
        return f"Continue for {int(step.distance_m)} m"
    return f"Continue for {step.distance_m / 1000:.1f} km"


def _flatten_steps(legs: Sequence[RouteLeg]) -> List[RouteStep]:
    return [step for leg in legs for step in leg.steps]


class RouteTracker:
    """
    Stateful progress tracker for a single navigation session.

    Usage:
        tracker = RouteTracker(config)
        tracker.start(legs, TravelMode.WALK, start_location)

        # Inside GPS loop:
        result = tracker.update_location(fix, recalc_handler)

    The tracker is not thread-safe; feed it from a single writer.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or NavConfig()
        self._clock = clock
        self._state: SessionState = INACTIVE

    # ------------------------------------------------------------------
    # Setup / teardown
    # ------------------------------------------------------------------

    def start(
        self,
        legs: Sequence[RouteLeg],
        travel_mode: TravelMode,
        start_location: Optional[Coord] = None,
        waypoints: Optional[Sequence[Coord]] = None,
    ) -> bool:
        """
        Load a route and reset all progress state.

        Metrics are computed immediately so the first snapshot is populated
        before any live fix arrives.

        Returns:
            False when no legs were supplied (the tracker stays inactive).
        """
        if not legs:
            logger.warning("Refusing to start navigation without route legs.")
            return False

        session = ActiveSession(
            legs=list(legs),
            steps=_flatten_steps(legs),
            travel_mode=travel_mode,
            waypoints=list(waypoints or []),
            trip_start=start_location,
        )
        self._state = OnRoute(session)
        self._recompute_metrics(session)
        logger.info(
            f"Navigation started: {len(session.legs)} leg(s), "
            f"{len(session.steps)} step(s), mode={travel_mode.value}."
        )
        return True

    def apply_legs(self, legs: Sequence[RouteLeg]) -> bool:
        """
        Replace the route of the active session (recalculation or new waypoint).

        The step index is clamped, off-route is cleared and the polyline split
        is dropped until the next fix. Ignored when inactive or legs is empty.
        """
        session = self._session
        if session is None:
            logger.debug("Ignoring route replacement: navigation is not active.")
            return False
        if not legs:
            logger.warning("Ignoring route replacement with no legs.")
            return False

        session.legs = list(legs)
        session.steps = _flatten_steps(legs)
        session.current_step_index = min(session.current_step_index, len(session.steps))
        session.completed_polyline = None
        session.remaining_polyline = None
        self._state = OnRoute(session)
        self._recompute_metrics(session)
        logger.info(f"Route replaced: {len(session.legs)} leg(s), {len(session.steps)} step(s).")
        return True

    def finish(self, arrival: Coord) -> Optional[TripSummary]:
        """
        End the session as arrived and summarise the trip.

        Trip distance is the travelled polyline length, else the straight line
        from the trip start (very short trips never get a split).

        Returns:
            The summary, or None when no session was active.
        """
        session = self._session
        if session is None:
            return None

        if session.completed_polyline is not None:
            distance_m = polyline_length(session.completed_polyline)
        elif session.trip_start is not None:
            distance_m = coord_distance(session.trip_start, arrival)
        else:
            distance_m = 0.0

        distance_km = distance_m / 1000.0
        trip = TripSummary(
            distance_km=distance_km,
            carbon_grams=emissions_grams(session.travel_mode.emission_key, distance_km),
            mode=session.travel_mode.value,
        )
        self._state = INACTIVE
        logger.info(f"Arrived: {trip.reason}, {format_emissions(trip.carbon_grams)}.")
        return trip

    def reset(self) -> None:
        """Drop the session and every derived field."""
        self._state = INACTIVE

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def _session(self) -> Optional[ActiveSession]:
        if isinstance(self._state, (OnRoute, OffRoute)):
            return self._state.session
        return None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def is_off_route(self) -> bool:
        return isinstance(self._state, OffRoute)

    @property
    def steps(self) -> List[RouteStep]:
        session = self._session
        return list(session.steps) if session else []

    @property
    def current_step_index(self) -> int:
        session = self._session
        return session.current_step_index if session else 0

    @property
    def current_step(self) -> Optional[RouteStep]:
        session = self._session
        return session.current_step if session else None

    @property
    def travel_mode(self) -> Optional[TravelMode]:
        session = self._session
        return session.travel_mode if session else None

    @property
    def last_location(self) -> Optional[Coord]:
        session = self._session
        return session.last_location if session else None

    @property
    def waypoints(self) -> List[Coord]:
        session = self._session
        return list(session.waypoints) if session else []

    @property
    def destination(self) -> Optional[Coord]:
        """Last coordinate of the last leg that has geometry."""
        session = self._session
        if session is None:
            return None
        for leg in reversed(session.legs):
            if leg.polyline:
                return leg.polyline[-1]
        return None

    # ------------------------------------------------------------------
    # Core method: call on every GPS update
    # ------------------------------------------------------------------

    def update_location(
        self,
        fix: LocationFix,
        recalc_handler: Optional[RecalcHandler] = None,
    ) -> ProgressResult:
        """
        Compare a new GPS fix to the active route and refresh derived state.

        Args:
            fix:            Current device location.
            recalc_handler: Called with (origin, destination, mode) when a
                            route recalculation should be requested.

        Returns:
            ProgressResult with status, message and the new snapshot.
        """
        session = self._session
        if session is None:
            return ProgressResult(
                status=RouteStatus.INACTIVE,
                message="Navigation is not active.",
                snapshot=self.snapshot(),
            )

        location = fix.coord
        session.last_location = location
        polylines = session.polylines

        # 1. Snap to the nearest point on any leg
        nearest = nearest_point_on_polylines(location, polylines)
        if nearest is not None:
            snapped, distance_to_route = nearest
        else:
            snapped, distance_to_route = location, math.inf
        session.snapped_location = snapped

        # 2. Off-route: recalc only on the on → off transition
        if distance_to_route > self.config.off_route_threshold_m and isinstance(self._state, OnRoute):
            self._state = OffRoute(session, since=location)
            logger.info(f"Off route by {int(distance_to_route)} m; requesting recalculation.")
            self._request_recalc(recalc_handler, session, location)

        # 3. Travelled / remaining split
        all_coords = [c for polyline in polylines for c in polyline]
        if all_coords:
            completed, remaining = split_route_at(snapped, all_coords)
            session.completed_polyline = as_polyline(completed)
            session.remaining_polyline = as_polyline(remaining)

        # 4. Step advancement (forward only)
        previous_index = session.current_step_index
        self._advance_step(session, location)

        # 5. Arrival
        destination = self.destination
        if destination is not None and coord_distance(location, destination) < self.config.arrival_threshold_m:
            trip = self.finish(location)
            return ProgressResult(
                status=RouteStatus.ARRIVED,
                message="You have reached your destination.",
                snapshot=self.snapshot(trip_summary=trip),
                trip=trip,
            )

        # 6-8. Remaining distance/time, ETA, timing tier, emissions
        self._recompute_metrics(session)
        self._update_instruction_timing(session, location)

        # 9. Periodic refresh while on route
        if isinstance(self._state, OnRoute) and session.last_recalc_location is not None:
            if coord_distance(location, session.last_recalc_location) > self.config.recalc_distance_m:
                session.last_recalc_location = location
                self._request_recalc(recalc_handler, session, location)
        elif session.last_recalc_location is None:
            session.last_recalc_location = location

        snapshot = self.snapshot()
        if self.is_off_route:
            return ProgressResult(
                status=RouteStatus.OFF_ROUTE,
                message="You are off the route. Recalculating...",
                snapshot=snapshot,
            )
        if session.current_step_index > previous_index:
            return ProgressResult(
                status=RouteStatus.STEP_ADVANCED,
                message=snapshot.current_instruction or "",
                snapshot=snapshot,
            )
        to_next = session.distance_to_next_maneuver_m
        prefix = f"{int(to_next)} m to next maneuver. " if to_next is not None else ""
        return ProgressResult(
            status=RouteStatus.PROGRESSING,
            message=f"{prefix}({snapshot.current_instruction})",
            snapshot=snapshot,
        )

    def update_heading(self, degrees: float) -> None:
        """Store the latest compass heading; only the map layer consumes it."""
        session = self._session
        if session is not None:
            session.last_heading = degrees

    def set_waypoints(self, waypoints: Sequence[Coord]) -> None:
        session = self._session
        if session is not None:
            session.waypoints = list(waypoints)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self, trip_summary: Optional[TripSummary] = None) -> NavigationSnapshot:
        """Immutable view of the current state for the UI layer."""
        session = self._session
        if session is None:
            return NavigationSnapshot(trip_summary=trip_summary)

        step = session.current_step
        next_index = session.current_step_index + 1
        next_step = session.steps[next_index] if next_index < len(session.steps) else None
        return NavigationSnapshot(
            active=True,
            travel_mode=session.travel_mode,
            current_instruction=format_instruction(step) if step else "Navigation complete",
            next_instruction=format_instruction(next_step) if next_step else None,
            current_step_index=session.current_step_index,
            step_count=len(session.steps),
            remaining_distance_m=session.remaining_distance_m,
            remaining_time_s=session.remaining_time_s,
            eta=session.eta,
            is_off_route=self.is_off_route,
            instruction_timing=session.instruction_timing,
            distance_to_next_maneuver_m=session.distance_to_next_maneuver_m,
            emission_estimate_g=session.emission_estimate_g,
            emission_estimate_text=format_emissions(session.emission_estimate_g),
            snapped_location=session.snapped_location,
            heading=session.last_heading,
            completed_polyline=session.completed_polyline,
            remaining_polyline=session.remaining_polyline,
            trip_summary=trip_summary,
        )

    # ------------------------------------------------------------------
    # Internal calculations
    # ------------------------------------------------------------------

    def _request_recalc(
        self,
        handler: Optional[RecalcHandler],
        session: ActiveSession,
        origin: Coord,
    ) -> None:
        destination = self.destination
        if handler is None or destination is None:
            return
        handler(origin, destination, session.travel_mode)

    def _advance_step(self, session: ActiveSession, location: Coord) -> None:
        steps = session.steps
        if not steps:
            return

        # Near the current step's end → exactly one step forward
        step = session.current_step
        if step is not None and step.end is not None:
            if coord_distance(location, step.end) <= self.config.step_advance_threshold_m:
                session.current_step_index = min(session.current_step_index + 1, len(steps))
                return

        # Otherwise the closest step from here on; never backwards
        closest_index: Optional[int] = None
        closest_distance = math.inf
        for index in range(session.current_step_index, len(steps)):
            polyline = steps[index].polyline
            if not polyline:
                continue
            _, dist = nearest_point_on_polyline(location, polyline)
            if dist < closest_distance:
                closest_distance = dist
                closest_index = index

        if closest_index is not None:
            session.current_step_index = closest_index

    def _fallback_remaining(self, session: ActiveSession) -> float:
        """Remaining distance from step totals when no polyline split exists."""
        if not session.steps:
            return sum(leg.distance_m for leg in session.legs)

        remaining = 0.0
        step = session.current_step
        if step is not None:
            if session.last_location is not None and step.end is not None:
                remaining += coord_distance(session.last_location, step.end)
            else:
                remaining += step.distance_m     # pre-first-fix: static total
        remaining += sum(s.distance_m for s in session.steps[session.current_step_index + 1:])
        return remaining

    def _recompute_metrics(self, session: ActiveSession) -> None:
        total_distance = sum(leg.distance_m for leg in session.legs)
        total_time = sum(leg.expected_travel_time_s for leg in session.legs)

        if session.remaining_polyline is not None:
            remaining = polyline_length(session.remaining_polyline)
        else:
            remaining = self._fallback_remaining(session)
        remaining = max(0.0, remaining)

        # Linear share of the vendor's duration estimate
        remaining_time = total_time * (remaining / total_distance) if total_distance > 0 else 0.0

        session.remaining_distance_m = remaining
        session.remaining_time_s = remaining_time
        session.eta = self._clock() + timedelta(seconds=remaining_time) if remaining_time > 0 else None
        session.emission_estimate_g = emissions_grams(session.travel_mode.emission_key, remaining / 1000.0)

    def _update_instruction_timing(self, session: ActiveSession, location: Coord) -> None:
        step = session.current_step
        end = step.end if step is not None else None
        if end is None:
            session.distance_to_next_maneuver_m = None
            session.instruction_timing = InstructionTiming.NONE
            return

        to_maneuver = coord_distance(location, end)
        session.distance_to_next_maneuver_m = to_maneuver
        if to_maneuver < self.config.instruction_now_m:
            session.instruction_timing = InstructionTiming.NOW
        elif to_maneuver < self.config.instruction_upcoming_m:
            session.instruction_timing = InstructionTiming.UPCOMING
        elif to_maneuver < self.config.instruction_prepare_m:
            session.instruction_timing = InstructionTiming.PREPARE
        else:
            session.instruction_timing = InstructionTiming.NONE
