# relief/services/geocoder.py
"""
Free-text address -> coordinates via OpenStreetMap Nominatim.

One lookup, first result only. Any failure (network error, non-2xx, empty
result list, unparseable coordinates) returns None; the report is still saved
with its address text and null coordinates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from relief.core.config import settings
from relief.store.cache import ExpiringCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


class NominatimGeocoder:
    """
    Async geocoder.

    `client` may be injected (tests pass one with an `httpx.MockTransport`);
    otherwise a short-lived client is created per lookup.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ExpiringCache] = None,
    ) -> None:
        self.base_url = base_url or settings.GEOCODER_URL
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout_s = timeout_s or settings.GEOCODER_TIMEOUT_SECONDS
        self._client = client
        self._cache = cache

    async def _fetch(self, address: str) -> httpx.Response:
        params = {"format": "json", "q": address, "limit": 1}
        headers = {"User-Agent": self.user_agent}
        if self._client is not None:
            return await self._client.get(self.base_url, params=params, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.get(self.base_url, params=params, headers=headers)

    async def geocode(self, address: str) -> Optional[Coordinates]:
        address = (address or "").strip()
        if not address:
            return None

        cache_key = address.lower()
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        try:
            response = await self._fetch(address)
        except httpx.HTTPError as e:
            logger.error("Geocoding error for %r: %s", address, e)
            return None

        if response.status_code < 200 or response.status_code >= 300:
            logger.error("Geocoding API error: %s", response.status_code)
            return None

        try:
            results = response.json()
            if not results:
                return None
            first = results[0]
            coords = Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
        except (ValueError, KeyError, TypeError, IndexError) as e:
            logger.error("Unexpected geocoding payload for %r: %s", address, e)
            return None

        if self._cache is not None:
            self._cache.set(cache_key, coords)
        return coords


def build_geocoder() -> NominatimGeocoder:
    cache = None
    if settings.GEOCODE_CACHE_TTL_SECONDS > 0:
        cache = ExpiringCache(settings.GEOCODE_CACHE_TTL_SECONDS, prefix="geocode:")
    return NominatimGeocoder(cache=cache)
