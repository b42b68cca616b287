import json

import httpx
import pytest
from tenacity import wait_none

from sanpo.core.exceptions import RateLimitedError, ServiceError
from sanpo.models.domain import Coordinate
from sanpo.services.osm_client import OSMClient

NOMINATIM_URL = "https://nominatim.test/search"
VALHALLA_URL = "https://valhalla.test/route"


def make_client(handler) -> OSMClient:
    return OSMClient(
        nominatim_url=NOMINATIM_URL,
        valhalla_url=VALHALLA_URL,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch) -> None:
    monkeypatch.setattr(OSMClient._request.retry, "wait", wait_none())


@pytest.mark.asyncio
async def test_search_sends_query_and_returns_candidates() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["user_agent"] = request.headers.get("user-agent")
        return httpx.Response(200, json=[{"lat": "35.68", "lon": "139.76"}])

    candidates = await make_client(handler).search("Tokyo Station")

    assert candidates == [{"lat": "35.68", "lon": "139.76"}]
    assert seen["params"]["q"] == "Tokyo Station"
    assert seen["params"]["format"] == "jsonv2"
    assert seen["user_agent"].startswith("sanpo-guide")


@pytest.mark.asyncio
async def test_route_sends_pedestrian_request() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.url.params["json"])
        return httpx.Response(200, json={"trip": {"summary": {"time": 60}, "legs": []}})

    origin = Coordinate(lat=35.68, lon=139.76)
    destination = Coordinate(lat=35.65, lon=139.70)
    data = await make_client(handler).route(origin, destination)

    assert data["trip"]["summary"]["time"] == 60
    assert seen["payload"]["costing"] == "pedestrian"
    assert seen["payload"]["locations"] == [
        {"lat": 35.68, "lon": 139.76},
        {"lat": 35.65, "lon": 139.70},
    ]


@pytest.mark.asyncio
async def test_route_returns_valhalla_error_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error_code": 442, "error": "No path could be found"})

    data = await make_client(handler).route(
        Coordinate(lat=0.0, lon=0.0), Coordinate(lat=1.0, lon=1.0)
    )

    assert data["error_code"] == 442


@pytest.mark.asyncio
async def test_server_error_raises_service_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(ServiceError):
        await make_client(handler).search("Tokyo Station")


@pytest.mark.asyncio
async def test_transport_error_raises_service_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceError):
        await make_client(handler).search("Tokyo Station")


@pytest.mark.asyncio
async def test_invalid_json_raises_service_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(ServiceError):
        await make_client(handler).search("Tokyo Station")


@pytest.mark.asyncio
async def test_unexpected_search_payload_raises_service_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "Unable to geocode"})

    with pytest.raises(ServiceError):
        await make_client(handler).search("Tokyo Station")


@pytest.mark.asyncio
async def test_rate_limit_is_retried_then_succeeds() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(429)
        return httpx.Response(200, json=[])

    assert await make_client(handler).search("Tokyo Station") == []
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_persistent_rate_limit_surfaces_as_service_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    with pytest.raises(RateLimitedError) as exc_info:
        await make_client(handler).search("Tokyo Station")

    assert isinstance(exc_info.value, ServiceError)


@pytest.mark.asyncio
async def test_bad_request_from_geocoder_raises_service_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Bad request"})

    with pytest.raises(ServiceError):
        await make_client(handler).search("Tokyo Station")
