"""Error types raised by the guidance engine."""


class NavigationError(RuntimeError):
    """Base error for navigation session failures."""


class NoRouteError(NavigationError):
    """Raised when navigation is started on a route plan without points."""


class InvalidStateError(NavigationError):
    """Raised when an operation is not valid for the current session state."""


class PositionUnavailableError(NavigationError):
    """Raised when neither the position stream nor the fallback fetch produced a fix."""


__all__ = [
    "NavigationError",
    "NoRouteError",
    "InvalidStateError",
    "PositionUnavailableError",
]
