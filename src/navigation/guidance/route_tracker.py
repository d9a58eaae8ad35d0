# route_tracker.py
# Progress tracking against a loaded RoutePlan.
# Owns the forward-only cursor, the snapped position and the remaining route.
# Call load_route() once per plan, then snap() on every accepted fix.

from datetime import timedelta
from typing import Optional, Tuple

import numpy as np

from .models import Coord, RoutePlan, TrackingCursor
from .geo_utils import (
    bearing_deg,
    coords_to_arrays,
    distance_m,
    haversine_many,
    path_length_m,
)
from .nav_config import NavConfig


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def _closest_index(raw: Coord, lats: np.ndarray, lons: np.ndarray, start: int) -> int:
    """Index of the point nearest to raw, scanning from start only."""
    distances = haversine_many(raw, lats[start:], lons[start:])
    # argmin keeps the first index on ties
    return start + int(np.argmin(distances))


def snap_to_route(raw: Coord, cursor: TrackingCursor, plan: RoutePlan) -> Coord:
    """
    Snap a raw position onto the nearest not-yet-passed route point.

    Only points from cursor.last_index onwards are considered, so the
    cursor never moves backwards even when the route loops near itself.

    Args:
        raw:    Raw position fix.
        cursor: Tracking cursor, advanced in place.
        plan:   Route to snap to.

    Returns:
        The snapped route point, or raw unchanged when the plan is empty.
    """
    if plan.is_empty:
        return raw
    start = cursor.last_index
    lats, lons = coords_to_arrays(plan.points[start:])
    closest = start + _closest_index(raw, lats, lons, 0)
    if closest >= cursor.last_index:
        cursor.last_index = closest
    return plan.points[closest]


def estimate_time_remaining(
    distance: float,
    speed_mps: Optional[float],
    fallback_speed_mps: float,
) -> timedelta:
    """Time to cover distance at the reported speed, or the fallback if unknown."""
    speed = speed_mps if speed_mps is not None and speed_mps > 0 else fallback_speed_mps
    return timedelta(seconds=round(max(distance, 0.0) / speed))


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class RouteTracker:
    """
    Stateful progress tracker for a single route plan.

    Usage:
        tracker = RouteTracker(config)
        tracker.load_route(plan)

        # On every accepted fix:
        snapped = tracker.snap(fix.coord)
        bearing = tracker.update_bearing()
        remaining = tracker.distance_to_destination()
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._plan = RoutePlan()
        self._lats = np.empty(0)
        self._lons = np.empty(0)
        self._cursor = TrackingCursor()
        self._remaining: Tuple[Coord, ...] = ()
        self._snapped: Optional[Coord] = None
        self._bearing: float = 0.0

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def load_route(self, plan: RoutePlan) -> None:
        """Replace the plan and reset all progress."""
        self._plan = plan
        self._lats, self._lons = coords_to_arrays(plan.points)
        self.reset()

    def reset(self) -> None:
        """Rewind to the start of the current plan."""
        self._cursor.last_index = 0
        self._remaining = self._plan.points
        self._snapped = None
        self._bearing = 0.0

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def plan(self) -> RoutePlan:
        return self._plan

    @property
    def last_index(self) -> int:
        return self._cursor.last_index

    @property
    def remaining_route(self) -> Tuple[Coord, ...]:
        return self._remaining

    @property
    def snapped_position(self) -> Optional[Coord]:
        return self._snapped

    @property
    def bearing(self) -> float:
        return self._bearing

    # ------------------------------------------------------------------
    # Core methods
    # ------------------------------------------------------------------

    def snap(self, raw: Coord) -> Coord:
        """Snap raw onto the route and advance the cursor and remaining route."""
        if self._plan.is_empty:
            self._snapped = raw
            return raw

        closest = _closest_index(raw, self._lats, self._lons, self._cursor.last_index)
        if closest >= self._cursor.last_index:
            self._cursor.last_index = closest
            self._remaining = self._plan.points[closest:]

        self._snapped = self._plan.points[closest]
        return self._snapped

    def update_bearing(self) -> float:
        """
        Bearing from the snapped position toward the next remaining point.

        The point after the snapped one is used; the snapped point itself
        is at ~0 m and has no stable direction. With fewer than two
        remaining points the previous bearing is kept.
        """
        if self._snapped is not None and len(self._remaining) > 1:
            self._bearing = bearing_deg(self._snapped, self._remaining[1])
        return self._bearing

    def distance_to_destination(self, position: Optional[Coord] = None) -> float:
        """
        Road-following distance left, summed along the remaining route.

        Falls back to the straight line to the destination when no
        remaining route is known.
        """
        start = position or self._snapped
        if start is None:
            start = self._plan.points[0] if self._plan.points else None
        if start is None:
            return 0.0

        if not self._remaining:
            destination = self._plan.destination
            return distance_m(start, destination) if destination else 0.0

        return path_length_m(start, self._remaining)
