"""Geocoding: label coordinates and resolve free-text searches."""

from __future__ import annotations

import httpx
import structlog

from modules.tracking.errors import GeocodingError, SearchError
from modules.tracking.models import Coordinate, SearchResult
from shared.config import Settings

logger = structlog.get_logger()

DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org"
DEFAULT_ORS_URL = "https://api.openrouteservice.org"
USER_AGENT = "LiveRouteTracker/1.0"


class Geocoder:
    """Nominatim-backed reverse geocoding and place search."""

    def __init__(
        self,
        nominatim_url: str = DEFAULT_NOMINATIM_URL,
        timeout: float = 10.0,
        user_agent: str = USER_AGENT,
    ):
        self.nominatim_url = nominatim_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent}

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        """Reverse geocode coordinates to a human-readable address.

        Raises:
            GeocodingError: If there is no match or the request fails.
        """
        params = {"format": "jsonv2", "lat": coordinate.lat, "lon": coordinate.lon}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self.nominatim_url}/reverse", params=params, headers=self.headers
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(f"Reverse geocoding failed for {coordinate}: {e}") from e

        label = data.get("display_name") if isinstance(data, dict) else None
        if not label:
            raise GeocodingError(f"No address found for {coordinate}")
        return label

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Search for a place by name. An empty list means no match.

        Raises:
            SearchError: If the search request fails.
        """
        params: dict[str, str | int] = {"q": query, "format": "json", "limit": limit}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self.nominatim_url}/search", params=params, headers=self.headers
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("search_failed", query=query, error=str(e))
            raise SearchError(f"Search failed for '{query}': {e}") from e

        if not isinstance(data, list):
            logger.error("search_failed", query=query, error="unexpected response body")
            raise SearchError(f"Search failed for '{query}': unexpected response body")

        results: list[SearchResult] = []
        for item in data:
            try:
                coordinate = Coordinate(float(item["lat"]), float(item["lon"]))
            except (KeyError, TypeError, ValueError):
                logger.debug("search_result_skipped", query=query, item=item)
                continue
            results.append(
                SearchResult(label=item.get("display_name", query), coordinate=coordinate)
            )
        return results


class OpenRouteServiceGeocoder(Geocoder):
    """Reverse geocoding through openrouteservice (requires an API key).

    Search still goes through Nominatim.
    """

    def __init__(
        self,
        api_key: str,
        ors_url: str = DEFAULT_ORS_URL,
        nominatim_url: str = DEFAULT_NOMINATIM_URL,
        timeout: float = 10.0,
        user_agent: str = USER_AGENT,
    ):
        super().__init__(nominatim_url, timeout, user_agent)
        self.api_key = api_key
        self.ors_url = ors_url.rstrip("/")

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        params = {
            "api_key": self.api_key,
            "point.lon": coordinate.lon,
            "point.lat": coordinate.lat,
            "size": 1,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(f"{self.ors_url}/geocode/reverse", params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(f"Reverse geocoding failed for {coordinate}: {e}") from e

        features = data.get("features") if isinstance(data, dict) else None
        if not features or not isinstance(features, list):
            raise GeocodingError(f"No address found for {coordinate}")
        properties = features[0].get("properties") if isinstance(features[0], dict) else None
        label = properties.get("label") if isinstance(properties, dict) else None
        if not label:
            raise GeocodingError(f"No address found for {coordinate}")
        return label


def build_geocoder(settings: Settings) -> Geocoder:
    """Pick the reverse-geocoding provider from settings."""
    if settings.geocoding_provider == "openrouteservice":
        if not settings.geocoding_api_key:
            raise ValueError("geocoding_api_key is required for openrouteservice")
        return OpenRouteServiceGeocoder(
            api_key=settings.geocoding_api_key,
            ors_url=settings.ors_url,
            nominatim_url=settings.nominatim_url,
            timeout=settings.http_timeout,
            user_agent=settings.user_agent,
        )
    return Geocoder(
        nominatim_url=settings.nominatim_url,
        timeout=settings.http_timeout,
        user_agent=settings.user_agent,
    )
