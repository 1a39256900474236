"""Unit tests for postcode geocoding, road routing and distance resolution."""

from __future__ import annotations

import httpx
import pytest

from carbonscheme.core.errors import ValidationError
from carbonscheme.db.models import DistanceUnit
from carbonscheme.modules.distance import (
    Coordinates,
    DistanceResolver,
    DistanceUnavailableError,
    PostcodeGeocoder,
    RoadRouter,
    UnresolvedLocationError,
    haversine_km,
)

LONDON = Coordinates(latitude=51.5074, longitude=-0.1278)
PARIS = Coordinates(latitude=48.8566, longitude=2.3522)


def _geocoder(handler) -> PostcodeGeocoder:
    client = httpx.AsyncClient(
        base_url="https://postcodes.test", transport=httpx.MockTransport(handler)
    )
    return PostcodeGeocoder("https://postcodes.test", client=client)


def _router(handler) -> RoadRouter:
    client = httpx.AsyncClient(
        base_url="https://osrm.test", transport=httpx.MockTransport(handler)
    )
    return RoadRouter("https://osrm.test", client=client)


def _postcodes_handler(request: httpx.Request) -> httpx.Response:
    known = {
        "/postcodes/SW1A1AA": {"latitude": 51.501009, "longitude": -0.141588},
        "/postcodes/M11AE": {"latitude": 53.480759, "longitude": -2.242631},
    }
    result = known.get(request.url.path)
    if result is None:
        return httpx.Response(404, json={"status": 404, "error": "Invalid postcode"})
    return httpx.Response(200, json={"status": 200, "result": result})


def test_haversine_london_to_paris() -> None:
    assert haversine_km(LONDON, PARIS) == pytest.approx(343.5, abs=1.0)
    assert haversine_km(LONDON, LONDON) == 0


@pytest.mark.asyncio
async def test_geocode_normalizes_postcode_before_lookup() -> None:
    geocoder = _geocoder(_postcodes_handler)
    coords = await geocoder.geocode(" sw1a 1aa ")
    assert coords == Coordinates(latitude=51.501009, longitude=-0.141588)


@pytest.mark.asyncio
async def test_geocode_unknown_postcode_is_unresolved() -> None:
    geocoder = _geocoder(_postcodes_handler)
    with pytest.raises(UnresolvedLocationError, match="Unable to geocode postcode: ZZ99ZZ"):
        await geocoder.geocode("ZZ9 9ZZ")


@pytest.mark.asyncio
async def test_geocode_missing_coordinates_is_invalid_postcode() -> None:
    geocoder = _geocoder(
        lambda request: httpx.Response(200, json={"result": {"latitude": None}})
    )
    with pytest.raises(UnresolvedLocationError, match="Invalid postcode"):
        await geocoder.geocode("SW1A1AA")


@pytest.mark.asyncio
async def test_geocode_server_error_is_unavailable() -> None:
    geocoder = _geocoder(lambda request: httpx.Response(503))
    with pytest.raises(DistanceUnavailableError):
        await geocoder.geocode("SW1A1AA")


@pytest.mark.asyncio
async def test_geocode_network_error_is_unavailable() -> None:
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    geocoder = _geocoder(_boom)
    with pytest.raises(DistanceUnavailableError):
        await geocoder.geocode("SW1A1AA")


@pytest.mark.asyncio
async def test_router_reads_first_route_distance_in_km() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"routes": [{"distance": 12345.0}, {"distance": 1.0}]})

    router = _router(_handler)
    assert await router.route_km(LONDON, PARIS) == pytest.approx(12.345)
    # lon,lat ordering
    assert seen[0].url.path == "/route/v1/driving/-0.1278,51.5074;2.3522,48.8566"
    assert seen[0].url.params["overview"] == "false"


@pytest.mark.asyncio
async def test_router_failures_return_none() -> None:
    assert await _router(lambda request: httpx.Response(500)).route_km(LONDON, PARIS) is None
    assert (
        await _router(lambda request: httpx.Response(200, json={"routes": []})).route_km(
            LONDON, PARIS
        )
        is None
    )


@pytest.mark.asyncio
async def test_literal_distance_skips_lookups() -> None:
    def _unexpected(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no lookup expected")

    resolver = DistanceResolver(_geocoder(_unexpected))
    assert await resolver.resolve(None, None, "mi", literal_distance=10) == pytest.approx(16.0934)
    assert await resolver.resolve(None, None, literal_distance=0) == 0


@pytest.mark.asyncio
async def test_negative_literal_distance_is_rejected() -> None:
    resolver = DistanceResolver(_geocoder(_postcodes_handler))
    with pytest.raises(ValidationError, match="Invalid distance"):
        await resolver.resolve("SW1A1AA", "M11AE", literal_distance=-1)


@pytest.mark.asyncio
async def test_missing_postcode_uses_caller_message() -> None:
    resolver = DistanceResolver(_geocoder(_postcodes_handler))
    with pytest.raises(ValidationError, match="set both postcodes please"):
        await resolver.resolve("SW1A1AA", "  ", missing_message="set both postcodes please")


@pytest.mark.asyncio
async def test_road_distance_preferred_over_haversine() -> None:
    resolver = DistanceResolver(
        _geocoder(_postcodes_handler),
        _router(lambda request: httpx.Response(200, json={"routes": [{"distance": 335000}]})),
    )
    assert await resolver.resolve("SW1A 1AA", "M1 1AE") == pytest.approx(335.0)


@pytest.mark.asyncio
async def test_router_failure_falls_back_to_haversine() -> None:
    geocoder = _geocoder(_postcodes_handler)
    resolver = DistanceResolver(geocoder, _router(lambda request: httpx.Response(502)))
    km = await resolver.resolve("SW1A1AA", "M11AE", DistanceUnit.MI)
    direct = haversine_km(
        Coordinates(51.501009, -0.141588), Coordinates(53.480759, -2.242631)
    )
    # Always km, whatever the preferred unit
    assert km == pytest.approx(direct)
    assert 250 < km < 270


@pytest.mark.asyncio
async def test_unknown_postcode_propagates() -> None:
    resolver = DistanceResolver(_geocoder(_postcodes_handler))
    with pytest.raises(UnresolvedLocationError):
        await resolver.resolve("SW1A1AA", "ZZ99ZZ")
