"""
Venue Resolver Classes

Turn a venue name and city into coordinates. Lookups are memoized so each
venue is resolved at most once per process.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
import aiohttp

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"


class VenueResolver(ABC):
    """Abstract base class for venue resolvers"""

    @abstractmethod
    async def resolve(self, venue_name: str, city: str) -> Optional[Tuple[float, float]]:
        """Return (lat, lng) for the venue, or None if it cannot be found"""
        pass


class NominatimVenueResolver(VenueResolver):
    """Geocode venues through OpenStreetMap Nominatim"""

    def __init__(
        self,
        country: str = "Netherlands",
        request_interval: float = 1.1,
        timeout_seconds: float = 10,
        user_agent: str = "BubbleMap/1.0",
    ):
        self.country = country
        self.request_interval = request_interval  # Nominatim allows 1 req/sec
        self.timeout_seconds = timeout_seconds
        self.headers = {"User-Agent": user_agent}  # Nominatim requires a user agent
        self._cache: Dict[str, Optional[Tuple[float, float]]] = {}
        self._lock = asyncio.Lock()

    async def resolve(self, venue_name: str, city: str) -> Optional[Tuple[float, float]]:
        cache_key = f"{venue_name}, {city}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        # Serialize uncached lookups to respect the rate limit
        async with self._lock:
            if cache_key in self._cache:
                return self._cache[cache_key]

            params = {
                "q": f"{venue_name}, {city}, {self.country}",
                "format": "json",
                "limit": "1",
            }
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            try:
                async with aiohttp.ClientSession(headers=self.headers, timeout=timeout) as session:
                    async with session.get(NOMINATIM_URL, params=params) as response:
                        response.raise_for_status()
                        results = await response.json()
            finally:
                await asyncio.sleep(self.request_interval)

            if not results:
                logger.warning(f"No location found for: {venue_name}")
                location = None
            else:
                location = (float(results[0]["lat"]), float(results[0]["lon"]))
                logger.info(f"Geocoded: {venue_name} -> {location[0]}, {location[1]}")

            self._cache[cache_key] = location
            return location


class StaticVenueResolver(VenueResolver):
    """Resolve venues from a fixed name -> (lat, lng) table"""

    def __init__(self, locations: Dict[str, Tuple[float, float]]):
        self.locations = locations

    async def resolve(self, venue_name: str, city: str) -> Optional[Tuple[float, float]]:
        return self.locations.get(venue_name)
