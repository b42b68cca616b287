from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import ROUTE_POINTS, valhalla_response
from sanpo.core.exceptions import DecodeError, RouteNotFoundError, ServiceError
from sanpo.models.domain import Coordinate
from sanpo.services.cache import AsyncCache
from sanpo.services.osm_client import OSMClient
from sanpo.services.routing import RoutingService

ORIGIN = Coordinate(lat=35.681236, lon=139.767125)
DESTINATION = Coordinate(lat=35.658034, lon=139.701636)


@pytest.fixture
def routing_service(osm) -> RoutingService:
    return RoutingService(client=osm, cache=AsyncCache("route_walk"))


@pytest.mark.asyncio
async def test_walking_route_is_parsed(routing_service: RoutingService, osm) -> None:
    route = await routing_service.get_walking_route(ORIGIN, DESTINATION)

    assert route.duration_seconds == 1800
    assert len(route.path) == len(ROUTE_POINTS)
    for got, expected in zip(route.path, ROUTE_POINTS):
        assert got == pytest.approx(expected, abs=1e-6)
    osm.route.assert_awaited_once_with(ORIGIN, DESTINATION)


@pytest.mark.asyncio
async def test_route_cache_is_direction_sensitive(routing_service: RoutingService, osm) -> None:
    await routing_service.get_walking_route(ORIGIN, DESTINATION)
    await routing_service.get_walking_route(ORIGIN, DESTINATION)
    assert osm.route.await_count == 1

    await routing_service.get_walking_route(DESTINATION, ORIGIN)
    assert osm.route.await_count == 2


@pytest.mark.asyncio
async def test_routing_error_payload_is_not_cached(routing_service: RoutingService, osm) -> None:
    osm.route = AsyncMock(
        side_effect=[
            {"error_code": 442, "error": "No path could be found for input", "status_code": 400},
            valhalla_response(1200),
        ]
    )

    with pytest.raises(RouteNotFoundError):
        await routing_service.get_walking_route(ORIGIN, DESTINATION)

    route = await routing_service.get_walking_route(ORIGIN, DESTINATION)

    assert route.duration_seconds == 1200
    assert osm.route.await_count == 2


@pytest.mark.asyncio
async def test_valhalla_no_route_answer_is_retried_upstream() -> None:
    answers = [
        httpx.Response(400, json={"error_code": 171, "error": "No suitable edges near location"}),
        httpx.Response(200, json=valhalla_response(900)),
    ]
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return answers[len(requests) - 1]

    client = OSMClient(
        nominatim_url="https://nominatim.test/search",
        valhalla_url="https://valhalla.test/route",
        transport=httpx.MockTransport(handler),
    )
    service = RoutingService(client=client, cache=AsyncCache("route_walk"))

    with pytest.raises(RouteNotFoundError, match="No suitable edges"):
        await service.get_walking_route(ORIGIN, DESTINATION)

    route = await service.get_walking_route(ORIGIN, DESTINATION)

    assert route.duration_seconds == 900
    assert len(requests) == 2


@pytest.mark.parametrize(
    "trip",
    [
        {"summary": {"time": 100}, "legs": []},
        {"summary": {"time": 100}, "legs": [{"shape": ""}]},
        {"summary": {"time": -5}, "legs": [{"shape": "_p~iF~ps|U_ulLnnqC"}]},
        {"summary": {}, "legs": [{"shape": "_p~iF~ps|U_ulLnnqC"}]},
    ],
)
@pytest.mark.asyncio
async def test_unusable_trip_raises_route_not_found(routing_service: RoutingService, osm, trip) -> None:
    osm.route = AsyncMock(return_value={"trip": trip})

    with pytest.raises(RouteNotFoundError):
        await routing_service.get_walking_route(ORIGIN, DESTINATION)


@pytest.mark.asyncio
async def test_malformed_shape_raises_decode_error(routing_service: RoutingService, osm) -> None:
    osm.route = AsyncMock(
        side_effect=[
            {"trip": {"summary": {"time": 600}, "legs": [{"shape": "_p~iF~ps|U_"}]}},
            valhalla_response(600),
        ]
    )

    with pytest.raises(DecodeError):
        await routing_service.get_walking_route(ORIGIN, DESTINATION)

    # A bad shape is not remembered; the next request asks again
    route = await routing_service.get_walking_route(ORIGIN, DESTINATION)
    assert route.duration_seconds == 600
    assert osm.route.await_count == 2


@pytest.mark.asyncio
async def test_failed_route_request_is_not_cached(routing_service: RoutingService, osm) -> None:
    osm.route = AsyncMock(side_effect=[ServiceError("valhalla down"), valhalla_response(900)])

    with pytest.raises(ServiceError):
        await routing_service.get_walking_route(ORIGIN, DESTINATION)

    route = await routing_service.get_walking_route(ORIGIN, DESTINATION)

    assert route.duration_seconds == 900
    assert osm.route.await_count == 2


@pytest.mark.asyncio
async def test_zero_duration_route_is_accepted(routing_service: RoutingService, osm) -> None:
    osm.route = AsyncMock(return_value=valhalla_response(0))

    route = await routing_service.get_walking_route(ORIGIN, DESTINATION)

    assert route.duration_seconds == 0
