# main.py
# Entry point: simulates a GPS feed driving a NavigationSession.
# In production, replace QueuedPositionFeed with your platform's PositionFeed
# and build the plan with OSRMRouteClient.fetch_route().
#
# Run with: python -m navigation.guidance.main

import logging

from navigation.guidance.models import Coord, ManeuverStep, NavigationSnapshot, RoutePlan
from navigation.guidance.nav_config import NavConfig
from navigation.guidance.navigator import NavigationSession
from navigation.guidance.position_feed import QueuedPositionFeed, fixes_along_route

# ------------------------------------------------------------------
# Logging setup: configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# ------------------------------------------------------------------
# Config: tweak thresholds here, not inside the modules
# ------------------------------------------------------------------
config = NavConfig(
    min_movement_m=5.0,
    maneuver_threshold_m=30.0,
    log_positions=False,
)

# ------------------------------------------------------------------
# Simulated route (Sıhhiye → Kurtuluş, Ankara)
# ------------------------------------------------------------------
ROUTE_POINTS = [
    Coord(39.92409,  32.845382),
    Coord(39.9240467, 32.8451522),
    Coord(39.9232599, 32.8441792),
    Coord(39.9240102, 32.8452347),
    Coord(39.9249406, 32.8462865),
    Coord(39.9254588, 32.8477125),
    Coord(39.9208164, 32.8533392),
    Coord(39.920927,  32.8533893),
    Coord(39.9210086, 32.8529793),
]

STEPS = [
    ManeuverStep("depart", ROUTE_POINTS[0]),
    ManeuverStep("turn right", ROUTE_POINTS[5]),
    ManeuverStep("turn sharp left", ROUTE_POINTS[7]),
    ManeuverStep("arrive", ROUTE_POINTS[8]),
]


def render(snapshot: NavigationSnapshot) -> None:
    if not snapshot.is_active:
        print("[Nav] idle")
        return
    instruction = snapshot.next_instruction or "Follow the route"
    distance = snapshot.distance_to_destination_m
    shown = f"{distance / 1000:.1f} km" if distance >= 1000 else f"{distance:.0f} m"
    print(
        f"  {instruction:<16} {shown:>8}  "
        f"{int(snapshot.eta.total_seconds() // 60)} min  "
        f"bearing {snapshot.bearing_deg:5.1f}°"
    )


def main() -> None:
    plan = RoutePlan(points=ROUTE_POINTS, steps=STEPS)
    feed = QueuedPositionFeed()
    session = NavigationSession(config, feed=feed)
    session.subscribe(render)
    session.subscribe_errors(lambda e: print(f"  ⚠  {e}"))

    session.start(plan)
    print("\n--- GPS Loop Active ---")

    for fix in fixes_along_route(plan, speed_mps=1.4):
        feed.push(fix)
    feed.join()

    session.stop()
    feed.close()
    print("\n--- Session complete ---")


if __name__ == "__main__":
    main()
