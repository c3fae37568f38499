# pharmaroute/services/routing.py
import logging
from typing import Any, List, Optional, Sequence, Tuple

import httpx

from pharmaroute.core.config import Settings
from pharmaroute.core.errors import OracleResponseInvalid, OracleUnavailable
from pharmaroute.schemas import OptimizedStop, RoutePlan

logger = logging.getLogger(__name__)

Stop = Tuple[str, str]  # (order_id, address)


def format_minutes(duration_s: float) -> str:
    return f"{round(duration_s / 60)} minutes"


def format_km(distance_m: float) -> str:
    return f"{distance_m / 1000:.1f} km"


def _leg_total(legs, key: str) -> float:
    try:
        return float(sum((leg.get(key) or {}).get("value", 0) for leg in legs))
    except (AttributeError, TypeError, ValueError) as ex:
        raise OracleResponseInvalid(f"Oracle returned malformed leg {key}", field=key) from ex


def plan_from_directions(data: Any, stops: Sequence[Stop]) -> RoutePlan:
    """
    Turn a Directions API JSON body into a RoutePlan.
    ``waypoint_order`` indexes into ``stops``; legs cover start -> stops -> start.
    Any body that does not have that shape raises OracleResponseInvalid.
    """
    if not isinstance(data, dict):
        raise OracleResponseInvalid("Oracle returned a non-object body", body_type=type(data).__name__)
    status = data.get("status")
    if status != "OK" or not data.get("routes"):
        raise OracleUnavailable(
            f"Could not optimize route. Status: {status}",
            oracle_status=status,
            oracle_message=data.get("error_message"),
        )

    routes = data["routes"]
    route = routes[0] if isinstance(routes, list) else None
    if not isinstance(route, dict):
        raise OracleResponseInvalid("Oracle returned a malformed route")
    waypoint_order = route.get("waypoint_order")
    if waypoint_order is None:
        waypoint_order = list(range(len(stops)))
    if not isinstance(waypoint_order, list):
        raise OracleResponseInvalid("Oracle returned a malformed waypoint order")

    ordered: List[OptimizedStop] = []
    for position, index in enumerate(waypoint_order, start=1):
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(stops):
            raise OracleResponseInvalid("Oracle returned an unknown waypoint index", index=index)
        ordered.append(OptimizedStop(order_id=stops[index][0], stop_number=position))

    legs = route.get("legs") or []
    if not isinstance(legs, list):
        raise OracleResponseInvalid("Oracle returned malformed legs")
    distance_m = _leg_total(legs, "distance")
    duration_s = _leg_total(legs, "duration")
    return RoutePlan(
        stops=ordered,
        estimated_time=format_minutes(duration_s),
        estimated_distance=format_km(distance_m),
        distance_m=distance_m,
        duration_s=duration_s,
    )


class GoogleDirectionsOracle:
    """
    Round-trip optimization through the Google Directions API.
    Requires GOOGLE_MAPS_API_KEY; every failure surfaces as OracleUnavailable.
    """

    def __init__(
        self,
        api_key: Optional[str],
        url: str = "https://maps.googleapis.com/maps/api/directions/json",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        return cls(
            settings.google_maps_api_key,
            url=settings.directions_url,
            timeout=settings.oracle_timeout_s,
            transport=transport,
        )

    async def optimize(self, start_address: str, stops: Sequence[Stop]) -> RoutePlan:
        if not stops:
            return RoutePlan(stops=[], estimated_time=format_minutes(0), estimated_distance=format_km(0))
        if not self.api_key:
            raise OracleUnavailable("Google Maps API key is not configured.")

        params = {
            "origin": start_address,
            "destination": start_address,  # round trip
            "waypoints": "optimize:true|" + "|".join(address for _, address in stops),
            "mode": "driving",
            "key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as c:
                r = await c.get(self.url, params=params)
                r.raise_for_status()
                data = r.json()
        except httpx.TimeoutException as ex:
            logger.warning("directions request timed out after %.1fs", self.timeout)
            raise OracleUnavailable("Route optimization timed out", timeout_s=self.timeout) from ex
        except httpx.HTTPError as ex:
            logger.warning("directions request failed: %s", ex)
            raise OracleUnavailable(f"Route optimization failed: {ex}") from ex
        except ValueError as ex:
            raise OracleUnavailable("Route optimization returned a non-JSON body") from ex

        return plan_from_directions(data, stops)
