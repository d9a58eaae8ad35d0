import random
from datetime import timedelta
from typing import List, Optional

import pytest

from navigation.guidance.errors import (
    InvalidStateError,
    NoRouteError,
    PositionUnavailableError,
)
from navigation.guidance.geo_utils import distance_m
from navigation.guidance.models import Coord, Fix, ManeuverStep, RoutePlan, SessionStatus
from navigation.guidance.nav_config import VEHICLE_FALLBACK_SPEED_MPS, NavConfig
from navigation.guidance.navigator import NavigationSession
from navigation.guidance.position_feed import PositionFeed, Subscription

from conftest import P0, P1, P2, make_loop_plan


def fix_at(coord: Coord, speed: Optional[float] = None) -> Fix:
    return Fix(coord.lat, coord.lon, speed_mps=speed)


class StubFeed(PositionFeed):
    """Feed that never streams; records subscriptions and serves canned fallbacks."""

    def __init__(self, last_known: Optional[Fix] = None, fresh: Optional[Fix] = None) -> None:
        self.last_known = last_known
        self.fresh = fresh
        self.subscriptions: List[Subscription] = []
        self.fresh_timeouts: List[float] = []

    def subscribe(self, on_fix, on_error=None) -> Subscription:
        sub = Subscription(on_fix, on_error)
        self.subscriptions.append(sub)
        return sub

    def last_known_fix(self) -> Optional[Fix]:
        return self.last_known

    def current_fix(self, timeout_s: float) -> Fix:
        self.fresh_timeouts.append(timeout_s)
        if self.fresh is None:
            raise PositionUnavailableError("timed out")
        return self.fresh


# --- Lifecycle ---------------------------------------------------------

def test_start_without_points_raises_no_route(config):
    session = NavigationSession(config)
    with pytest.raises(NoRouteError):
        session.start(RoutePlan())
    assert session.status is SessionStatus.IDLE
    assert not session.snapshot.is_active


def test_start_initialises_state(config, three_point_plan):
    session = NavigationSession(config)
    snapshot = session.start(three_point_plan)

    assert snapshot.status is SessionStatus.ACTIVE
    assert snapshot.route_index == 0
    assert snapshot.current_step_index == 0
    assert snapshot.track == ()
    assert snapshot.remaining_route == (P0, P1, P2)
    assert snapshot.next_instruction == ""
    assert snapshot.distance_to_destination_m == pytest.approx(three_point_plan.length_m)
    assert snapshot.eta == timedelta(seconds=round(three_point_plan.length_m / 5.0))


def test_start_uses_route_set_beforehand(config, three_point_plan):
    session = NavigationSession(config)
    session.set_route(three_point_plan)
    session.start()
    assert session.is_active
    assert session.route is three_point_plan


def test_start_again_on_same_route_is_a_no_op(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    session.on_position_update(fix_at(P1))

    snapshot = session.start(three_point_plan)

    assert snapshot.route_index == 1
    assert len(snapshot.track) == 1


def test_start_on_other_route_while_active_is_invalid(config, three_point_plan, loop_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    with pytest.raises(InvalidStateError):
        session.start(loop_plan)
    assert session.route is three_point_plan


def test_set_route_while_active_is_invalid(config, three_point_plan, loop_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    with pytest.raises(InvalidStateError):
        session.set_route(loop_plan)


def test_stop_then_start_resets_progress(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    session.on_position_update(fix_at(P2))
    assert session.last_index == 2
    assert session.current_step_index == 1

    stopped = session.stop()
    assert stopped.status is SessionStatus.IDLE
    assert stopped.route_index == 0
    assert stopped.current_step_index == 0
    assert stopped.track == ()
    assert stopped.remaining_route == ()
    assert stopped.next_instruction == ""
    assert stopped.bearing_deg == 0.0

    restarted = session.start(three_point_plan)
    assert restarted.route_index == 0
    assert restarted.current_step_index == 0
    assert restarted.track == ()
    assert restarted.remaining_route == (P0, P1, P2)


def test_stop_while_idle_is_harmless(config):
    session = NavigationSession(config)
    assert session.stop().status is SessionStatus.IDLE


def test_clear_route_stops_navigation(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    session.clear_route()
    assert not session.is_active
    assert session.route.is_empty
    with pytest.raises(NoRouteError):
        session.start()


# --- Position updates --------------------------------------------------

def test_update_while_idle_is_ignored(config, three_point_plan):
    session = NavigationSession(config)
    session.set_route(three_point_plan)
    assert session.on_position_update(fix_at(P1)) is None
    assert session.last_index == 0


def test_fix_on_middle_point_snaps_there(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)

    snapshot = session.on_position_update(fix_at(P1))

    assert snapshot.position == P1
    assert snapshot.route_index == 1
    assert snapshot.remaining_route == (P1, P2)
    assert snapshot.track == (P1,)
    assert snapshot.bearing_deg == pytest.approx(90.0)
    assert snapshot.distance_to_destination_m == pytest.approx(distance_m(P1, P2))


def test_noisy_fix_is_snapped_to_route(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    snapshot = session.on_position_update(Fix(0.0002, 0.00105))
    assert snapshot.raw_position == Coord(0.0002, 0.00105)
    assert snapshot.position == P1


def test_small_movement_is_filtered(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    session.on_position_update(fix_at(P0))
    before = session.snapshot

    # ~2 m east of P0, below the 5 m threshold
    assert session.on_position_update(Fix(0.0, 0.00002)) is None

    assert session.snapshot is before
    assert session.last_index == 0
    assert len(session.snapshot.track) == 1


def test_movement_threshold_is_configurable(three_point_plan):
    session = NavigationSession(NavConfig(min_movement_m=0.5, log_positions=False))
    session.start(three_point_plan)
    session.on_position_update(fix_at(P0))
    assert session.on_position_update(Fix(0.0, 0.00002)) is not None
    assert len(session.snapshot.track) == 2


def test_eta_uses_reported_speed(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)
    snapshot = session.on_position_update(fix_at(P0, speed=10.0))
    assert snapshot.eta == timedelta(seconds=round(snapshot.distance_to_destination_m / 10.0))


def test_eta_uses_configured_fallback_speed(three_point_plan):
    session = NavigationSession(
        NavConfig(fallback_speed_mps=VEHICLE_FALLBACK_SPEED_MPS, log_positions=False)
    )
    session.start(three_point_plan)
    snapshot = session.on_position_update(fix_at(P0, speed=0.0))
    expected = round(snapshot.distance_to_destination_m / VEHICLE_FALLBACK_SPEED_MPS)
    assert snapshot.eta == timedelta(seconds=expected)


# --- Maneuvers ---------------------------------------------------------

def test_maneuver_advances_near_step_and_never_reverts(config, three_point_plan):
    session = NavigationSession(config)
    session.start(three_point_plan)

    snapshot = session.on_position_update(Fix(0.0, 0.0019))
    assert snapshot.current_step_index == 1
    assert snapshot.next_instruction == "arrive"

    snapshot = session.on_position_update(fix_at(P0))
    assert snapshot.current_step_index == 1
    assert snapshot.next_instruction == "arrive"


def test_current_step_is_not_reannounced(config):
    a, b, c = Coord(0.0, 0.0), Coord(0.0, 0.001), Coord(0.0, 0.002)
    plan = RoutePlan(
        points=[a, b, c],
        steps=[ManeuverStep("depart", a), ManeuverStep("turn left", b), ManeuverStep("arrive", c)],
    )
    session = NavigationSession(config)
    session.start(plan)

    assert session.on_position_update(fix_at(a)).next_instruction == ""
    assert session.on_position_update(fix_at(b)).next_instruction == "turn left"
    assert session.on_position_update(Fix(0.0, 0.0011)).current_step_index == 1


def test_far_steps_do_not_advance(config):
    plan = RoutePlan(points=[P0, P1, P2], steps=[ManeuverStep("start", P0), ManeuverStep("turn", P2)])
    session = NavigationSession(config)
    session.start(plan)
    snapshot = session.on_position_update(fix_at(P1))
    assert snapshot.current_step_index == 0
    assert snapshot.next_instruction == ""


def test_step_index_and_instruction_monotonic_for_random_fixes(config):
    plan = make_loop_plan()
    plan = RoutePlan(
        points=plan.points,
        steps=[ManeuverStep(f"step {i}", p) for i, p in enumerate(plan.points)],
    )
    session = NavigationSession(config)
    session.start(plan)

    rng = random.Random(3)
    step, cursor = 0, 0
    for _ in range(300):
        session.on_position_update(Fix(rng.uniform(-0.0005, 0.0006), rng.uniform(-0.0005, 0.0025)))
        snap = session.snapshot
        assert snap.current_step_index >= step
        assert snap.route_index >= cursor
        if snap.next_instruction:
            assert snap.next_instruction == f"step {snap.current_step_index}"
        step, cursor = snap.current_step_index, snap.route_index


# --- Listeners ---------------------------------------------------------

def test_listeners_receive_every_accepted_update(config, three_point_plan):
    session = NavigationSession(config)
    received = []
    unsubscribe = session.subscribe(received.append)

    session.start(three_point_plan)
    session.on_position_update(fix_at(P0))
    session.on_position_update(Fix(0.0, 0.00001))   # filtered
    session.on_position_update(fix_at(P1))
    session.stop()

    assert [s.status for s in received] == [
        SessionStatus.ACTIVE, SessionStatus.ACTIVE, SessionStatus.ACTIVE, SessionStatus.IDLE,
    ]
    assert received[2].track == (P0, P1)

    unsubscribe()
    session.start(three_point_plan)
    assert len(received) == 4


def test_failing_listener_does_not_break_session(config, three_point_plan):
    session = NavigationSession(config)

    def broken(_snapshot):
        raise RuntimeError("render failed")

    session.subscribe(broken)
    session.start(three_point_plan)
    assert session.on_position_update(fix_at(P1)).route_index == 1


# --- Feed integration --------------------------------------------------

def test_start_subscribes_and_stop_cancels(config, three_point_plan):
    feed = StubFeed()
    session = NavigationSession(config, feed=feed)
    session.start(three_point_plan)
    assert len(feed.subscriptions) == 1
    assert feed.subscriptions[0].active

    session.stop()
    assert not feed.subscriptions[0].active


def test_stream_fix_reaches_session(config, three_point_plan):
    feed = StubFeed()
    session = NavigationSession(config, feed=feed)
    session.start(three_point_plan)
    feed.subscriptions[0].deliver_fix(fix_at(P1))
    assert session.last_index == 1


def test_fix_after_stop_is_not_delivered(config, three_point_plan):
    feed = StubFeed()
    session = NavigationSession(config, feed=feed)
    session.start(three_point_plan)
    sub = feed.subscriptions[0]
    session.stop()

    session.set_route(three_point_plan)
    sub.deliver_fix(fix_at(P2))
    assert session.last_index == 0
    assert session.snapshot.track == ()


def test_stream_error_uses_last_known_fix(config, three_point_plan):
    feed = StubFeed(last_known=fix_at(P1))
    session = NavigationSession(config, feed=feed)
    session.start(three_point_plan)

    feed.subscriptions[0].deliver_error(OSError("gps glitch"))

    assert session.is_active
    assert session.last_index == 1
    assert feed.fresh_timeouts == []


def test_stream_error_falls_back_to_fresh_fix(three_point_plan):
    feed = StubFeed(fresh=fix_at(P2))
    session = NavigationSession(NavConfig(fallback_timeout_s=12.0, log_positions=False), feed=feed)
    session.start(three_point_plan)

    session.on_position_error(OSError("gps glitch"))

    assert session.last_index == 2
    assert feed.fresh_timeouts == [12.0]


def test_failed_fallback_is_reported_and_session_stays_active(config, three_point_plan):
    feed = StubFeed()
    session = NavigationSession(config, feed=feed)
    errors = []
    session.subscribe_errors(errors.append)
    session.start(three_point_plan)

    assert session.on_position_error(OSError("gps glitch")) is None

    assert session.is_active
    assert len(errors) == 1
    assert isinstance(errors[0], PositionUnavailableError)

    # Normal operation resumes on the next fix
    assert session.on_position_update(fix_at(P1)).route_index == 1


def test_stream_error_without_feed_is_reported(config, three_point_plan):
    session = NavigationSession(config)
    errors = []
    session.subscribe_errors(errors.append)
    session.start(three_point_plan)
    session.on_position_error(OSError("gps glitch"))
    assert session.is_active
    assert isinstance(errors[0], PositionUnavailableError)


def test_stream_error_while_idle_is_ignored(config):
    feed = StubFeed(last_known=fix_at(P1))
    session = NavigationSession(config, feed=feed)
    assert session.on_position_error(OSError("gps glitch")) is None


class BrokenCacheFeed(StubFeed):
    def last_known_fix(self) -> Optional[Fix]:
        raise OSError("location cache unavailable")


def test_failing_last_known_lookup_is_reported(config, three_point_plan):
    session = NavigationSession(config, feed=BrokenCacheFeed())
    errors = []
    session.subscribe_errors(errors.append)
    session.start(three_point_plan)

    assert session.on_position_error(OSError("gps glitch")) is None

    assert session.is_active
    assert len(errors) == 1
    assert isinstance(errors[0], PositionUnavailableError)
