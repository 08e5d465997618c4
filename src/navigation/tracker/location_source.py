# location_source.py
# Location/heading sources that stand in for the device sensors.
# SimulatedLocationSource replays recorded fixes; StaticDirectionsSource hands
# back a fixed route for every request.

import logging
import threading
from typing import Iterable, List, Optional, Sequence

from .collaborators import LocationObserver
from .models import Coord, LocationFix, RouteLeg, TravelMode

logger = logging.getLogger(__name__)


class SimulatedLocationSource:
    """
    Pushes fixes to registered observers while tracking is on.

    Observers are referenced, not owned: whoever registers must call
    remove_observer() on teardown.
    """

    def __init__(self, initial: Optional[LocationFix] = None) -> None:
        self._lock = threading.Lock()
        self._observers: List[LocationObserver] = []
        self._location = initial
        self.is_tracking = False
        self.heading_enabled = False

    @property
    def location(self) -> Optional[LocationFix]:
        return self._location

    def add_observer(self, observer: LocationObserver) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_observer(self, observer: LocationObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def start_tracking(self) -> None:
        self.is_tracking = True

    def stop_tracking(self) -> None:
        self.is_tracking = False

    def start_heading_updates(self) -> None:
        self.heading_enabled = True

    def stop_heading_updates(self) -> None:
        self.heading_enabled = False

    def _snapshot_observers(self) -> List[LocationObserver]:
        with self._lock:
            return list(self._observers)

    def push(self, fix: LocationFix) -> None:
        """Record a fix and deliver it to observers when tracking."""
        self._location = fix
        if not self.is_tracking:
            return
        for observer in self._snapshot_observers():
            observer.on_location(fix)

    def push_heading(self, degrees: float) -> None:
        if not self.heading_enabled:
            return
        for observer in self._snapshot_observers():
            observer.on_heading(degrees)

    def replay(self, fixes: Iterable[LocationFix]) -> int:
        """Push fixes in order until tracking stops. Returns how many were delivered."""
        delivered = 0
        for fix in fixes:
            if not self.is_tracking:
                break
            self.push(fix)
            delivered += 1
        return delivered


class StaticDirectionsSource:
    """Directions source that always answers with the same legs."""

    def __init__(self, legs: Sequence[RouteLeg]) -> None:
        self._legs = list(legs)
        self.requests: List[tuple] = []

    def calculate(
        self,
        origin: Coord,
        destination: Coord,
        waypoints: Sequence[Coord],
        mode: TravelMode,
    ) -> List[RouteLeg]:
        self.requests.append((origin, destination, tuple(waypoints), mode))
        logger.debug(f"Static directions: {origin} → {destination} ({mode.value}).")
        return list(self._legs)
