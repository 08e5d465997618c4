# errors.py
# Error types raised by collaborators and caught inside the navigation core.


class NavigationError(RuntimeError):
    """Base error for the navigation package."""


class DirectionsError(NavigationError):
    """Raised by a directions source when a route request fails."""


class RewardGatewayError(NavigationError):
    """Raised when recording trip credits with the backend fails."""


__all__ = [
    "NavigationError",
    "DirectionsError",
    "RewardGatewayError",
]
