# route_source.py
# Adapter for the external routing service (OSRM HTTP API).
# Sole responsibility: fetch a route and translate it into a RoutePlan.
# Any failure becomes an empty RoutePlan ("no route"), never an exception.

import logging
from typing import Any, Dict, List, Optional

import requests

from .models import Coord, ManeuverStep, RoutePlan

logger = logging.getLogger(__name__)

DEFAULT_OSRM_URL = "http://router.project-osrm.org"


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _lonlat_to_coord(pair) -> Coord:
    """OSRM sends [lon, lat]; internal order is (lat, lon)."""
    lon, lat = pair[0], pair[1]
    return Coord(float(lat), float(lon))


def _instruction_label(maneuver: Dict[str, Any]) -> str:
    label = str(maneuver["type"])
    modifier = maneuver.get("modifier")
    return f"{label} {modifier}" if modifier else label


def route_plan_from_osrm(payload: Optional[Dict[str, Any]]) -> RoutePlan:
    """
    Build a RoutePlan from an OSRM /route response body.

    Expects geometries=geojson and steps=true. Steps from every leg are
    concatenated in order.

    Args:
        payload: Decoded JSON body.

    Returns:
        The parsed plan, or an empty RoutePlan if the body is unusable.
    """
    try:
        route = payload["routes"][0]
        points = [_lonlat_to_coord(c) for c in route["geometry"]["coordinates"]]
        steps: List[ManeuverStep] = []
        for leg in route.get("legs", []):
            for step in leg.get("steps", []):
                maneuver = step["maneuver"]
                steps.append(ManeuverStep(
                    instruction=_instruction_label(maneuver),
                    location=_lonlat_to_coord(maneuver["location"]),
                    distance_m=float(step.get("distance", 0.0)),
                ))
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.warning(f"Unusable route response: {e!r}")
        return RoutePlan()

    if len(points) < 2:
        logger.warning(f"Route response has {len(points)} point(s); treating as no route.")
        return RoutePlan()

    return RoutePlan(points=points, steps=steps)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class OSRMRouteClient:
    """
    Fetches routes from an OSRM server.

    Args:
        base_url: Server root, e.g. http://router.project-osrm.org
        profile:  OSRM profile (driving, walking, cycling).
        timeout:  Seconds to wait for a response before giving up.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OSRM_URL,
        profile: str = "driving",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self._http = session or requests.Session()

    def route_url(self, origin: Coord, destination: Coord) -> str:
        coords = f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
        return f"{self.base_url}/route/v1/{self.profile}/{coords}"

    def fetch_route(self, origin: Coord, destination: Coord) -> RoutePlan:
        """
        Request a route; returns an empty RoutePlan on any failure.

        Args:
            origin:      Start coordinate.
            destination: Target coordinate.
        """
        url = self.route_url(origin, destination)
        params = {"overview": "full", "geometries": "geojson", "steps": "true"}
        try:
            response = self._http.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Route request failed: {e}")
            return RoutePlan()

        if not isinstance(payload, dict) or payload.get("code", "Ok") != "Ok":
            logger.warning(f"Routing service rejected the request: {payload!r:.200}")
            return RoutePlan()

        plan = route_plan_from_osrm(payload)
        logger.info(f"Route fetched: {len(plan.points)} points, {len(plan.steps)} steps.")
        return plan
