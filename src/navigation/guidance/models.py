# models.py
# Shared data structures and enums used across all modules.

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional, Tuple


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")


# ---------------------------------------------------------------------------
# Route plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ManeuverStep:
    """A single maneuver instruction anchored to a route coordinate."""
    instruction: str
    location: Coord
    distance_m: float = 0.0


@dataclass(frozen=True)
class RoutePlan:
    """
    Polyline plus maneuver list for one route request.

    An empty ``points`` tuple means "no route available".
    """
    points: Tuple[Coord, ...] = ()
    steps: Tuple[ManeuverStep, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence, store tuples so the plan stays immutable
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def destination(self) -> Optional[Coord]:
        return self.points[-1] if self.points else None

    @property
    def length_m(self) -> float:
        from .geo_utils import path_length_m
        if not self.points:
            return 0.0
        return path_length_m(self.points[0], self.points[1:])


# ---------------------------------------------------------------------------
# Raw position fix
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Fix:
    """One raw reading from a location source."""
    lat: float
    lon: float
    speed_mps: Optional[float] = None      # None or <= 0 means unknown
    timestamp: Optional[float] = None      # Unix timestamp
    accuracy_m: Optional[float] = None

    @property
    def coord(self) -> Coord:
        return Coord(self.lat, self.lon)


# ---------------------------------------------------------------------------
# Tracking state
# ---------------------------------------------------------------------------

@dataclass
class TrackingCursor:
    """Index into RoutePlan.points at or behind the last snapped position."""
    last_index: int = 0


class SessionStatus(Enum):
    IDLE   = "idle"
    ACTIVE = "active"


@dataclass(frozen=True)
class NavigationSnapshot:
    """Read-only view of a session, emitted after every accepted update."""
    status: SessionStatus
    raw_position: Optional[Coord] = None
    position: Optional[Coord] = None            # snapped
    bearing_deg: float = 0.0
    distance_to_destination_m: float = 0.0
    eta: timedelta = timedelta(0)
    next_instruction: str = ""
    current_step_index: int = 0
    route_index: int = 0
    track: Tuple[Coord, ...] = field(default_factory=tuple)
    remaining_route: Tuple[Coord, ...] = field(default_factory=tuple)

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE
