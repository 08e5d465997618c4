# collaborators.py
# Narrow interfaces to the external services the navigation core talks to.
# Implementations live elsewhere (location_source.py, rewards.py) or in the app.

from typing import List, Optional, Protocol, Sequence

from .models import Coord, LocationFix, RouteLeg, TravelMode


class DirectionsSource(Protocol):
    """Vendor directions service: origin → waypoints → destination."""

    def calculate(
        self,
        origin: Coord,
        destination: Coord,
        waypoints: Sequence[Coord],
        mode: TravelMode,
    ) -> List[RouteLeg]:
        """
        Returns:
            One leg per consecutive stop pair, or [] when no route was found.

        Raises:
            DirectionsError: the request itself failed.
        """
        ...


class LocationObserver(Protocol):
    def on_location(self, fix: LocationFix) -> None: ...

    def on_heading(self, degrees: float) -> None: ...


class LocationSource(Protocol):
    """Device location/heading stream. Observers are held, never owned."""

    @property
    def location(self) -> Optional[LocationFix]: ...

    def add_observer(self, observer: LocationObserver) -> None: ...

    def remove_observer(self, observer: LocationObserver) -> None: ...

    def start_tracking(self) -> None: ...

    def stop_tracking(self) -> None: ...

    def start_heading_updates(self) -> None: ...

    def stop_heading_updates(self) -> None: ...


class RewardGateway(Protocol):
    """Backend call granting credits for a completed trip."""

    def record_trip_credits(self, points: int, reason: str) -> None:
        """
        Raises:
            RewardGatewayError: the backend rejected or never received the write.
        """
        ...
