# navigator.py
# Public entry point for the navigation system.
# Owns the session lifecycle; delegates progress tracking to RouteTracker and
# talks to the outside world only through the collaborator interfaces.

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from .collaborators import DirectionsSource, LocationSource, RewardGateway
from .emissions import carbon_credits, emissions_grams, format_emissions
from .errors import DirectionsError, RewardGatewayError
from .models import (
    Coord,
    LocationFix,
    NavigationSnapshot,
    ProgressResult,
    RouteLeg,
    RouteStatus,
    SessionState,
    TravelMode,
    TripSummary,
)
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .route_tracker import RouteTracker, format_instruction
from .worker import BackgroundWorker

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[NavigationSnapshot], None]


# ---------------------------------------------------------------------------
# Route preview (before GO)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoutePreview:
    distance_km: float
    duration_s: float
    emissions_grams: float
    emissions_text: str
    credits: int
    step_count: int
    first_instruction: Optional[str]


def preview_route(legs: Sequence[RouteLeg], travel_mode: TravelMode) -> RoutePreview:
    """Totals for a route the user has not started yet."""
    distance_km = sum(leg.distance_m for leg in legs) / 1000.0
    grams = emissions_grams(travel_mode.emission_key, distance_km)
    steps = [step for leg in legs for step in leg.steps]
    return RoutePreview(
        distance_km=distance_km,
        duration_s=sum(leg.expected_travel_time_s for leg in legs),
        emissions_grams=grams,
        emissions_text=format_emissions(grams),
        credits=carbon_credits(grams),
        step_count=len(steps),
        first_instruction=format_instruction(steps[0]) if steps else None,
    )


# ---------------------------------------------------------------------------
# Lifecycle controller
# ---------------------------------------------------------------------------

class NavigationController:
    """
    High-level navigation session controller.

    Typical lifecycle:
        nav = NavigationController(location_source, directions, rewards)
        nav.start(legs, TravelMode.WALK)

        # location_source now calls nav.on_location(fix) for every fix
        ...
        nav.stop()          # or automatic arrival

    Every entry point is serialized on one re-entrant lock, so fixes are
    processed one at a time in arrival order. Recalculation and reward calls
    run on a background worker and never block a location update.

    Args:
        location_source: Device location/heading stream (observed, not owned).
        directions:      Vendor directions service for recalculation.
        rewards:         Backend gateway for trip credits.
        config:          Optional NavConfig; defaults to NavConfig().
        worker:          Optional BackgroundWorker; one is created if omitted.
        nav_logger:      Optional NavLogger for route/event files.
        clock:           Time source for ETA.
    """

    def __init__(
        self,
        location_source: LocationSource,
        directions: DirectionsSource,
        rewards: RewardGateway,
        config: Optional[NavConfig] = None,
        worker: Optional[BackgroundWorker] = None,
        nav_logger: Optional[NavLogger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or NavConfig()
        self._location_source = location_source
        self._directions = directions
        self._rewards = rewards

        self._owns_worker = worker is None
        self._worker = worker or BackgroundWorker()
        if nav_logger is None and self.config.event_log_enabled:
            nav_logger = NavLogger(self.config)
        self._nav_logger = nav_logger

        self._tracker = RouteTracker(self.config, clock=clock)
        self._lock = threading.RLock()
        self._generation = 0            # bumps invalidate in-flight recalculations
        self._observing = False
        self._listeners: List[SnapshotListener] = []
        self._trip_summary: Optional[TripSummary] = None
        self._snapshot = NavigationSnapshot()

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start(
        self,
        legs: Sequence[RouteLeg],
        travel_mode: TravelMode,
        waypoints: Optional[Sequence[Coord]] = None,
    ) -> Tuple[bool, str]:
        """
        Begin a live session on precomputed legs.

        Returns:
            (success, message)
        """
        with self._lock:
            if self._tracker.is_active:
                self._teardown()
            self._trip_summary = None

            fix = self._location_source.location
            start_location = fix.coord if fix is not None else None
            if not self._tracker.start(legs, travel_mode, start_location, waypoints):
                self._tracker.reset()
                self._publish()
                return False, "No route to navigate."

            self._generation += 1
            self._location_source.add_observer(self)
            self._observing = True
            self._location_source.start_tracking()
            self._location_source.start_heading_updates()

            if self._nav_logger is not None:
                self._nav_logger.save_route(legs)

            self._publish()
            step_count = len(self._tracker.steps)
            logger.info(f"Route ready: {step_count} steps. First: {self._snapshot.current_instruction}")
            return True, f"Route ready. {step_count} steps."

    def stop(self) -> None:
        """User cancelled: tear down, clear everything, no reward."""
        with self._lock:
            if not self._tracker.is_active and not self._observing:
                return
            self._teardown()
            self._tracker.reset()
            self._trip_summary = None
            self._publish()
            logger.info("Navigation stopped by user.")

    def on_arrival(self, arrival_location: Coord) -> Optional[TripSummary]:
        """
        End the session as arrived. Safe to call when nothing is active.

        Returns:
            The trip summary, or None if there was no session.
        """
        with self._lock:
            trip = self._tracker.finish(arrival_location)
            if trip is None:
                return None
            self._complete_trip(trip)
            return trip

    def apply_legs(self, legs: Sequence[RouteLeg]) -> bool:
        """Replace the active route; supersedes any in-flight recalculation."""
        with self._lock:
            self._generation += 1
            applied = self._tracker.apply_legs(legs)
            if applied:
                self._publish()
            return applied

    def add_waypoint(self, waypoint: Coord) -> bool:
        """Insert a stop before the destination and request a new route through it."""
        with self._lock:
            if not self._tracker.is_active:
                return False
            self._tracker.set_waypoints(self._tracker.waypoints + [waypoint])

            origin = self._tracker.last_location
            if origin is None and self._location_source.location is not None:
                origin = self._location_source.location.coord
            destination = self._tracker.destination
            mode = self._tracker.travel_mode
            if origin is None or destination is None or mode is None:
                logger.warning("Waypoint stored but no origin/destination to route from yet.")
                return True
            self._request_recalculation(origin, destination, mode)
            return True

    def close(self) -> None:
        """Stop navigation and shut down the worker if this controller created it."""
        self.stop()
        if self._owns_worker:
            self._worker.close()

    # ------------------------------------------------------------------
    # Location observer (called by the location source)
    # ------------------------------------------------------------------

    def on_location(self, fix: LocationFix) -> None:
        self.update(fix)

    def on_heading(self, degrees: float) -> None:
        with self._lock:
            if not self._observing:
                return
            self._tracker.update_heading(degrees)
            self._publish()

    def update(self, fix: LocationFix) -> ProgressResult:
        """
        Process a GPS fix and return the resulting navigation status.

        Fixes delivered after teardown are dropped without touching state.
        """
        with self._lock:
            if not self._observing or not self._tracker.is_active:
                return ProgressResult(
                    status=RouteStatus.INACTIVE,
                    message="Navigation is not active.",
                    snapshot=self._snapshot,
                )

            result = self._tracker.update_location(fix, self._request_recalculation)
            if self._nav_logger is not None and self.config.event_log_enabled:
                self._nav_logger.log_event(result, fix)

            if result.status is RouteStatus.ARRIVED and result.trip is not None:
                self._complete_trip(result.trip)
            else:
                self._publish()
            return result

    # ------------------------------------------------------------------
    # Snapshot publishing
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> None:
        with self._lock:
            self._listeners.append(listener)
            self._notify(listener, self._snapshot)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def clear_trip_summary(self) -> None:
        """Called by the UI once the completion banner has been shown."""
        with self._lock:
            if self._trip_summary is None:
                return
            self._trip_summary = None
            self._publish()

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> NavigationSnapshot:
        return self._snapshot

    @property
    def state(self) -> SessionState:
        return self._tracker.state

    @property
    def is_active(self) -> bool:
        return self._tracker.is_active

    @property
    def trip_summary(self) -> Optional[TripSummary]:
        return self._trip_summary

    @property
    def current_step_index(self) -> int:
        return self._tracker.current_step_index

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _publish(self) -> None:
        self._snapshot = self._tracker.snapshot(trip_summary=self._trip_summary)
        for listener in list(self._listeners):
            self._notify(listener, self._snapshot)

    @staticmethod
    def _notify(listener: SnapshotListener, snapshot: NavigationSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception("Snapshot listener failed.")

    def _teardown(self) -> None:
        """Unregister from the location source; later fixes and recalcs are dropped."""
        self._generation += 1
        if not self._observing:
            return
        self._observing = False
        self._location_source.remove_observer(self)
        self._location_source.stop_tracking()
        self._location_source.stop_heading_updates()

    def _complete_trip(self, trip: TripSummary) -> None:
        self._teardown()
        self._tracker.reset()
        self._trip_summary = trip
        self._publish()

        credits = max(1, carbon_credits(trip.carbon_grams))
        reason = trip.reason
        self._worker.submit(lambda: self._record_credits(credits, reason))

    def _record_credits(self, credits: int, reason: str) -> None:
        try:
            self._rewards.record_trip_credits(credits, reason)
        except RewardGatewayError as e:
            logger.warning(f"Could not record {credits} trip credit(s) ({reason}): {e}")

    def _request_recalculation(self, origin: Coord, destination: Coord, mode: TravelMode) -> None:
        with self._lock:
            self._generation += 1
            generation = self._generation
            waypoints = self._tracker.waypoints
        logger.info(f"Recalculating route #{generation}: {origin} → {destination} via {len(waypoints)} stop(s).")
        self._worker.submit(
            lambda: self._run_recalculation(generation, origin, destination, waypoints, mode)
        )

    def _run_recalculation(
        self,
        generation: int,
        origin: Coord,
        destination: Coord,
        waypoints: List[Coord],
        mode: TravelMode,
    ) -> None:
        try:
            legs = self._directions.calculate(origin, destination, waypoints, mode)
        except DirectionsError as e:
            logger.warning(f"Route recalculation #{generation} failed: {e}")
            return
        if not legs:
            logger.warning(f"Route recalculation #{generation} found no route; keeping current geometry.")
            return

        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding stale recalculation #{generation} (current #{self._generation}).")
                return
            if self._tracker.apply_legs(legs):
                self._publish()
