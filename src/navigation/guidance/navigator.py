# navigator.py
# Public entry point for the guidance engine.
# Owns the session lifecycle; snapping and distance math live in route_tracker.

import logging
from datetime import timedelta
from typing import Callable, List, Optional

from .errors import InvalidStateError, NoRouteError, PositionUnavailableError
from .geo_utils import distance_m
from .models import Coord, Fix, NavigationSnapshot, RoutePlan, SessionStatus
from .nav_config import NavConfig
from .nav_logger import PositionLogger
from .position_feed import PositionFeed, Subscription
from .route_tracker import RouteTracker, estimate_time_remaining

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[NavigationSnapshot], object]
ErrorListener = Callable[[Exception], object]


class NavigationSession:
    """
    Navigation state machine for one traveler.

    Typical lifecycle:
        session = NavigationSession(config, feed=my_feed)
        session.subscribe(render)
        session.start(plan)          # IDLE -> ACTIVE, subscribes to the feed

        # Fixes arrive through the feed, or directly:
        session.on_position_update(Fix(lat, lon, speed_mps=1.4))

        session.stop()               # ACTIVE -> IDLE, cancels the feed

    Position updates must be delivered one at a time; the session does no
    locking of its own.

    Args:
        config: Optional NavConfig; defaults to NavConfig().
        feed:   Optional PositionFeed subscribed to while ACTIVE.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        feed: Optional[PositionFeed] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._feed = feed
        self._subscription: Optional[Subscription] = None

        self._tracker = RouteTracker(self.config)
        self.position_logger = PositionLogger(self.config)

        self._status = SessionStatus.IDLE
        self._track: List[Coord] = []
        self._last_accepted: Optional[Coord] = None
        self._raw_position: Optional[Coord] = None
        self._step_index: int = 0
        self._next_instruction: str = ""
        self._distance: float = 0.0
        self._eta = timedelta(0)

        self._listeners: List[SnapshotListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._snapshot = self._build_snapshot()

    # ------------------------------------------------------------------
    # Route management
    # ------------------------------------------------------------------

    def set_route(self, plan: RoutePlan) -> None:
        """
        Replace the current route plan.

        Raises:
            InvalidStateError: navigation is active on a different plan.
        """
        if self.is_active:
            if plan == self._tracker.plan:
                return
            raise InvalidStateError("Stop navigation before replacing the route.")
        self._tracker.load_route(plan)
        logger.info(f"Route set: {len(plan.points)} points, {len(plan.steps)} steps.")

    def clear_route(self) -> None:
        """Drop the current plan, stopping navigation first if needed."""
        if self.is_active:
            self.stop()
        self._tracker.load_route(RoutePlan())
        logger.info("Route cleared.")

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start(self, route: Optional[RoutePlan] = None) -> NavigationSnapshot:
        """
        Begin tracking a route.

        Args:
            route: Plan to follow; the plan from set_route() when omitted.

        Returns:
            Snapshot of the freshly started session.

        Raises:
            NoRouteError:      the plan has no points.
            InvalidStateError: already active on a different plan.
        """
        plan = self._tracker.plan if route is None else route

        if self.is_active:
            if plan == self._tracker.plan:
                return self._snapshot
            raise InvalidStateError("Navigation already active for another route; stop it first.")

        if plan.is_empty:
            raise NoRouteError("Cannot start navigation without a route.")

        if plan is self._tracker.plan:
            self._tracker.reset()
        else:
            self._tracker.load_route(plan)

        self._reset_progress()
        self._distance = self._tracker.distance_to_destination(plan.points[0])
        self._eta = estimate_time_remaining(self._distance, None, self.config.fallback_speed_mps)
        self._status = SessionStatus.ACTIVE

        if self._feed is not None:
            try:
                self._subscription = self._feed.subscribe(
                    self.on_position_update, self.on_position_error
                )
            except Exception:
                logger.exception("Could not subscribe to the position feed.")
                self._status = SessionStatus.IDLE
                self._reset_progress()
                raise

        logger.info(
            f"Navigation started: {len(plan.points)} points, "
            f"{len(plan.steps)} steps, {self._distance:.0f} m."
        )
        return self._publish()

    def stop(self) -> NavigationSnapshot:
        """
        End the current session.

        The feed subscription is cancelled before any state changes, so no
        fix can arrive after this returns. Stopping an idle session is a no-op.
        """
        if not self.is_active:
            logger.debug("stop() called while idle.")
            return self._snapshot

        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

        self._status = SessionStatus.IDLE
        self._tracker.reset()
        self._reset_progress()
        logger.info("Navigation stopped.")
        return self._publish()

    # ------------------------------------------------------------------
    # Position stream: call on every fix
    # ------------------------------------------------------------------

    def on_position_update(self, fix: Fix) -> Optional[NavigationSnapshot]:
        """
        Process a raw fix.

        Args:
            fix: Raw position reading.

        Returns:
            The new snapshot, or None when the session is idle or the fix
            moved less than min_movement_m from the last accepted one.
        """
        if not self.is_active:
            return None

        raw = fix.coord
        if self._last_accepted is not None:
            moved = distance_m(self._last_accepted, raw)
            if moved < self.config.min_movement_m:
                logger.debug(f"Fix ignored, moved {moved:.1f} m.")
                return None

        self._last_accepted = raw
        self._raw_position = raw

        snapped = self._tracker.snap(raw)
        self._tracker.update_bearing()
        self._distance = self._tracker.distance_to_destination(snapped)
        self._eta = estimate_time_remaining(
            self._distance, fix.speed_mps, self.config.fallback_speed_mps
        )
        self._track.append(snapped)
        self._advance_maneuver(snapped)

        snapshot = self._publish()
        self.position_logger.log_update(fix, snapshot)
        return snapshot

    def on_position_error(self, error: Exception) -> Optional[NavigationSnapshot]:
        """
        Handle a transient stream error without leaving ACTIVE.

        Runs one fallback fetch through the feed. If that fails too, a
        PositionUnavailableError goes to the error listeners and the
        session keeps waiting for the next stream event.
        """
        if not self.is_active:
            return None

        logger.warning(f"Position stream error: {error}")
        try:
            if self._feed is None:
                raise PositionUnavailableError(f"No fallback position source: {error}")
            fix = self._feed.fetch_fallback_fix(self.config.fallback_timeout_s)
        except PositionUnavailableError as e:
            logger.warning(f"Fallback position fetch failed: {e}")
            self._notify_error(e)
            return None

        return self.on_position_update(fix)

    # ------------------------------------------------------------------
    # Maneuvers
    # ------------------------------------------------------------------

    def _advance_maneuver(self, position: Coord) -> bool:
        """
        Move to the nearest upcoming step once it is within range.

        Only steps after the current one qualify, so an instruction is
        never announced twice and never reverts.
        """
        steps = self._tracker.plan.steps
        if self._step_index >= len(steps):
            return False

        min_distance = float("inf")
        nearest_index = self._step_index
        for i in range(self._step_index, len(steps)):
            d = distance_m(position, steps[i].location)
            if d < min_distance:
                min_distance = d
                nearest_index = i

        if min_distance < self.config.maneuver_threshold_m and nearest_index > self._step_index:
            self._step_index = nearest_index
            self._next_instruction = steps[nearest_index].instruction
            logger.info(f"Maneuver {nearest_index}: {self._next_instruction} ({min_distance:.0f} m)")
            return True
        return False

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._remove(self._listeners, listener)

    def subscribe_errors(self, listener: ErrorListener) -> Callable[[], None]:
        """Register a listener for non-fatal errors such as PositionUnavailableError."""
        self._error_listeners.append(listener)
        return lambda: self._remove(self._error_listeners, listener)

    @staticmethod
    def _remove(listeners: list, listener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _publish(self) -> NavigationSnapshot:
        self._snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Snapshot listener failed.")
        return self._snapshot

    def _notify_error(self, error: Exception) -> None:
        if not self._error_listeners:
            logger.error(f"Unhandled navigation error: {error}")
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener failed.")

    # ------------------------------------------------------------------
    # Internal state
    # ------------------------------------------------------------------

    def _reset_progress(self) -> None:
        self._track.clear()
        self._last_accepted = None
        self._raw_position = None
        self._step_index = 0
        self._next_instruction = ""
        self._distance = 0.0
        self._eta = timedelta(0)

    def _build_snapshot(self) -> NavigationSnapshot:
        active = self.is_active
        return NavigationSnapshot(
            status=self._status,
            raw_position=self._raw_position,
            position=self._tracker.snapped_position if active else None,
            bearing_deg=self._tracker.bearing,
            distance_to_destination_m=self._distance,
            eta=self._eta,
            next_instruction=self._next_instruction,
            current_step_index=self._step_index,
            route_index=self._tracker.last_index,
            track=tuple(self._track),
            remaining_route=self._tracker.remaining_route if active else (),
        )

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._status is SessionStatus.ACTIVE

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def snapshot(self) -> NavigationSnapshot:
        return self._snapshot

    @property
    def route(self) -> RoutePlan:
        return self._tracker.plan

    @property
    def current_step_index(self) -> int:
        return self._step_index

    @property
    def last_index(self) -> int:
        return self._tracker.last_index
