import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from sanpo.core.config import settings
from sanpo.core.exceptions import RateLimitedError, ServiceError
from sanpo.models.domain import Coordinate

logger = logging.getLogger(__name__)


class OSMClient:
    """Client for the OpenStreetMap geocoding (Nominatim) and routing (Valhalla) APIs"""

    def __init__(
        self,
        nominatim_url: Optional[str] = None,
        valhalla_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.nominatim_url = nominatim_url or settings.NOMINATIM_URL
        self.valhalla_url = valhalla_url or settings.VALHALLA_URL
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.transport = transport
        self.headers = {"User-Agent": settings.NOMINATIM_USER_AGENT}

    @retry(
        stop=stop_after_attempt(settings.MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(RateLimitedError),
        reraise=True,
    )
    async def _request(
        self, url: str, params: Dict[str, Any], accepted: Tuple[int, ...] = (200,)
    ) -> Any:
        """GET a JSON document from an upstream API"""

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport, headers=self.headers
        ) as client:
            try:
                response = await client.get(url, params=params)
            except httpx.TimeoutException as exc:
                logger.error(f"Upstream request timeout: {url}")
                raise ServiceError(f"Request to {url} timed out") from exc
            except httpx.HTTPError as exc:
                logger.error(f"Upstream request failed: {exc}")
                raise ServiceError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == 429:
            logger.warning(f"Rate limit exceeded: {url}")
            raise RateLimitedError(f"Rate limited by {url}")

        if response.status_code not in accepted:
            logger.error(f"Upstream API error: {response.status_code} {url}")
            raise ServiceError(f"{url} answered {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError(f"{url} returned invalid JSON") from exc

    async def search(self, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Ranked candidate list for a free-form place query"""

        params = {
            "q": query,
            "format": "jsonv2",
            "limit": limit or settings.GEOCODING_RESULT_LIMIT,
        }
        data = await self._request(self.nominatim_url, params)

        if not isinstance(data, list):
            raise ServiceError("Geocoder returned an unexpected payload")

        logger.debug(f"Geocoder returned {len(data)} candidates for {query!r}")
        return data

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        costing: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Raw Valhalla route response between two points"""

        payload = {
            "locations": [
                {"lat": origin.lat, "lon": origin.lon},
                {"lat": destination.lat, "lon": destination.lon},
            ],
            "costing": costing or settings.VALHALLA_COSTING,
            "directions_options": {"units": "kilometers"},
        }
        # Valhalla reports "no route" as 400 with a JSON error body
        data = await self._request(
            self.valhalla_url, {"json": json.dumps(payload)}, accepted=(200, 400)
        )

        if not isinstance(data, dict):
            raise ServiceError("Routing engine returned an unexpected payload")

        return data


osm_client = OSMClient()
