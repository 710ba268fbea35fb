"""Unit tests for the Nominatim geocoder (httpx MockTransport, no network)."""

from __future__ import annotations

import asyncio

import httpx

from relief.services.geocoder import Coordinates, NominatimGeocoder
from relief.store.cache import ExpiringCache

URL = "https://nominatim.test/search"


def _geocode(handler, address, cache=None):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            geocoder = NominatimGeocoder(base_url=URL, user_agent="ReliefTest/1.0", client=client, cache=cache)
            return await geocoder.geocode(address)

    return asyncio.run(_go())


def test_first_result_is_used():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"lat": "6.0535", "lon": "80.2210"}, {"lat": "0", "lon": "0"}])

    coords = _geocode(handler, "Galle")

    assert coords == Coordinates(lat=6.0535, lng=80.2210)
    params = seen[0].url.params
    assert params["q"] == "Galle"
    assert params["format"] == "json"
    assert params["limit"] == "1"
    assert seen[0].headers["user-agent"] == "ReliefTest/1.0"


def test_failures_return_none():
    def empty(request):
        return httpx.Response(200, json=[])

    def server_error(request):
        return httpx.Response(500, text="oops")

    def garbage(request):
        return httpx.Response(200, json=[{"lat": "north", "lon": "east"}])

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    for handler in (empty, server_error, garbage, unreachable):
        assert _geocode(handler, "xyzzy-nonexistent") is None


def test_blank_address_skips_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    assert _geocode(handler, "   ") is None
    assert calls == []


def test_cache_reuses_successful_lookups():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[{"lat": "7.2906", "lon": "80.6337"}])

    cache = ExpiringCache(60, prefix="geocode:")
    first = _geocode(handler, "Kandy", cache=cache)
    second = _geocode(handler, "kandy", cache=cache)

    assert first == second == Coordinates(lat=7.2906, lng=80.6337)
    assert len(calls) == 1
