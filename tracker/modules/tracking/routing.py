"""OSRM routing client."""

from __future__ import annotations

import httpx
import structlog

from modules.tracking.errors import RouteError
from modules.tracking.models import Coordinate
from shared.config import Settings

logger = structlog.get_logger()

DEFAULT_OSRM_URL = "http://router.project-osrm.org"


class RoutingClient:
    """Async client for the OSRM route service."""

    def __init__(
        self,
        base_url: str = DEFAULT_OSRM_URL,
        profile: str = "driving",
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout

    async def route(self, origin: Coordinate, destination: Coordinate) -> list[Coordinate]:
        """Return the best route from origin to destination as (lat, lon) points.

        OSRM speaks (lon, lat); the result is swapped before it is returned.

        Raises:
            RouteError: On transport failure, a non-``Ok`` response or no routes.
        """
        url = (
            f"{self.base_url}/route/v1/{self.profile}/"
            f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
        )
        params = {"overview": "full", "geometries": "geojson"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RouteError(f"Routing failed for {origin} -> {destination}: {e}") from e

        if not isinstance(data, dict):
            raise RouteError(f"Routing returned an unexpected body for {origin} -> {destination}")

        code = data.get("code")
        if code != "Ok":
            raise RouteError(f"Routing returned {code!r} for {origin} -> {destination}")

        routes = data.get("routes") or []
        if not routes:
            raise RouteError(f"No route found for {origin} -> {destination}")

        try:
            coordinates = routes[0]["geometry"]["coordinates"]
            points = [Coordinate(float(lat), float(lon)) for lon, lat, *_ in coordinates]
        except (KeyError, TypeError, ValueError) as e:
            raise RouteError(f"Malformed route geometry: {e}") from e

        logger.debug("route_fetched", origin=str(origin), destination=str(destination), points=len(points))
        return points


def build_routing_client(settings: Settings) -> RoutingClient:
    return RoutingClient(
        base_url=settings.osrm_url,
        profile=settings.osrm_profile,
        timeout=settings.http_timeout,
    )
