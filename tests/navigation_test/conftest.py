"""Shared fixtures for the guidance engine tests.

Puts src/ on sys.path and provides small equator routes whose points are
~111 m apart (0.001° of longitude).
"""
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from navigation.guidance.models import Coord, ManeuverStep, RoutePlan
from navigation.guidance.nav_config import NavConfig

P0 = Coord(0.0, 0.0)
P1 = Coord(0.0, 0.001)
P2 = Coord(0.0, 0.002)


# --- Factory helpers -------------------------------------------------
def make_loop_plan() -> RoutePlan:
    """Out-and-back route: east along the equator, then back west 11 m north of it."""
    return RoutePlan(points=[
        Coord(0.0, 0.0),
        Coord(0.0, 0.001),
        Coord(0.0, 0.002),
        Coord(0.0001, 0.002),
        Coord(0.0001, 0.001),
        Coord(0.0001, 0.0),
    ])


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def three_point_plan():
    return RoutePlan(
        points=[P0, P1, P2],
        steps=[ManeuverStep("start", P0), ManeuverStep("arrive", P2)],
    )


@pytest.fixture
def loop_plan():
    return make_loop_plan()


@pytest.fixture
def config():
    return NavConfig(log_positions=False)
