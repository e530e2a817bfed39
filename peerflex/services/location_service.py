"""Geocoding through a public geocoder, with a proxy fallback chain.

Every attempt runs under an explicit client-side timeout. Failures move on
to the next attempt after a short pause; when every attempt fails the
caller gets an empty result (search) or a coordinate-based fallback
address (reverse lookup) instead of an exception.
"""

import asyncio
import logging
import math
from typing import Any, List, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from peerflex.core.config import settings
from peerflex.core.errors import NotFoundError, ValidationError
from peerflex.schemas.location import Location, SearchResult


logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371
DEFAULT_LOCATION = Location(latitude=12.9716, longitude=77.5946)
USER_AGENT = "peerflex/0.1"


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class LocationService:

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        search_url: Optional[str] = None,
        reverse_url: Optional[str] = None,
        proxies: Optional[List[str]] = None,
        direct: Optional[bool] = None,
        timeout: Optional[float] = None,
        retry_delay: Optional[float] = None,
        ip_location_url: Optional[str] = None,
    ) -> None:
        self._client = client
        self._search_url = search_url or settings.GEOCODER_SEARCH_URL
        self._reverse_url = reverse_url or settings.GEOCODER_REVERSE_URL
        self._proxies = settings.GEOCODER_PROXIES if proxies is None else proxies
        self._direct = settings.GEOCODER_DIRECT if direct is None else direct
        self._timeout = settings.GEOCODER_TIMEOUT if timeout is None else timeout
        self._retry_delay = settings.GEOCODER_RETRY_DELAY if retry_delay is None else retry_delay
        self._ip_location_url = ip_location_url or settings.IP_LOCATION_URL

    def _attempts(self, target_url: str) -> List[Tuple[str, str]]:
        attempts = [(target_url, "direct")] if self._direct else []
        attempts.extend((proxy + quote(target_url, safe=""), "proxy") for proxy in self._proxies)
        return attempts

    async def _get_json(self, url: str) -> Any:
        if self._client is not None:
            response = await self._client.get(url, timeout=self._timeout, headers={"User-Agent": USER_AGENT})
        else:
            async with httpx.AsyncClient(timeout=self._timeout, headers={"User-Agent": USER_AGENT}) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.json()

    async def _first_success(self, target_url: str, label: str) -> Tuple[bool, Any]:
        attempts = self._attempts(target_url)
        for i, (url, kind) in enumerate(attempts):
            try:
                data = await self._get_json(url)
                logger.debug("%s attempt %d succeeded via %s", label, i + 1, kind)
                return True, data
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("%s attempt %d (%s) failed: %s", label, i + 1, kind, exc)
                if i < len(attempts) - 1 and self._retry_delay:
                    await asyncio.sleep(self._retry_delay)
        logger.warning("All %s attempts failed", label)
        return False, None

    async def search_locations(self, query: str, limit: int = 8) -> List[SearchResult]:
        if not query or not query.strip() or len(query) < 2:
            return []
        params = urlencode({"format": "json", "q": query, "limit": limit, "addressdetails": 1})
        ok, data = await self._first_success(f"{self._search_url}?{params}", "Location search")
        if not ok:
            return []
        if not isinstance(data, list):
            logger.warning("Location search returned %s instead of a list", type(data).__name__)
            return []
        results = []
        for item in data:
            try:
                results.append(
                    SearchResult(
                        display_name=item["display_name"],
                        lat=str(item["lat"]),
                        lon=str(item["lon"]),
                        type=item.get("type") or item.get("class") or "location",
                        address={k: str(v) for k, v in (item.get("address") or {}).items()} or None,
                    )
                )
            except (KeyError, TypeError, AttributeError):
                logger.debug("Skipping malformed search result %r", item)
        return results

    async def get_address_from_coords(self, location: Location) -> str:
        params = urlencode(
            {
                "format": "json",
                "lat": location.latitude,
                "lon": location.longitude,
                "zoom": 18,
                "addressdetails": 1,
            }
        )
        ok, data = await self._first_success(f"{self._reverse_url}?{params}", "Reverse geocode")
        if not ok or not isinstance(data, dict) or data.get("error"):
            return self.get_fallback_address(location)
        return data.get("display_name") or self.get_fallback_address(location)

    async def get_coords_from_address(self, address: str) -> Location:
        if not address or not address.strip():
            raise ValidationError("Please enter an address")
        results = await self.search_locations(address, limit=1)
        if not results:
            raise NotFoundError("Address not found")
        return Location(latitude=float(results[0].lat), longitude=float(results[0].lon))

    async def get_approximate_location(self) -> Location:
        try:
            data = await self._get_json(self._ip_location_url)
            return Location(latitude=float(data["latitude"]), longitude=float(data["longitude"]))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.info("IP location lookup failed, using default: %s", exc)
            return DEFAULT_LOCATION

    @staticmethod
    def calculate_distance(point1: Location, point2: Location) -> float:
        return haversine_km(point1.latitude, point1.longitude, point2.latitude, point2.longitude)

    @staticmethod
    def format_distance(distance_km: float) -> str:
        if distance_km < 1:
            return f"{round(distance_km * 1000)}m"
        return f"{distance_km:.1f}km"

    @staticmethod
    def get_fallback_address(location: Location) -> str:
        return f"Location at {location.latitude:.6f}, {location.longitude:.6f}"

    @staticmethod
    def is_valid_coordinates(latitude: float, longitude: float) -> bool:
        return -90 <= latitude <= 90 and -180 <= longitude <= 180
