import logging
from typing import Any, Dict, Optional, Tuple

from sanpo.core.config import settings
from sanpo.core.exceptions import RouteNotFoundError
from sanpo.models.domain import Coordinate, Route
from sanpo.services.cache import AsyncCache, make_cache_key
from sanpo.services.osm_client import OSMClient, osm_client
from sanpo.services.polyline import decode_polyline

logger = logging.getLogger(__name__)


class RoutingService:
    """Walking routes via Valhalla"""

    def __init__(
        self,
        client: Optional[OSMClient] = None,
        cache: Optional[AsyncCache[str, Route]] = None,
        precision: Optional[int] = None,
    ):
        self.client = client or osm_client
        self.cache = cache if cache is not None else routing_cache
        self.precision = precision or settings.POLYLINE_PRECISION

    async def get_walking_route(self, origin: Coordinate, destination: Coordinate) -> Route:
        """Route from ``origin`` to ``destination``; direction matters for caching"""

        key = make_cache_key(
            "route_walk",
            {
                "origin": [origin.lat, origin.lon],
                "destination": [destination.lat, destination.lon],
            },
        )
        # Only a decoded route is cached; error bodies and bad shapes stay retryable
        return await self.cache.get(key, lambda: self._fetch_route(origin, destination))

    async def _fetch_route(self, origin: Coordinate, destination: Coordinate) -> Route:
        data = await self.client.route(origin, destination)

        duration, shape = self._parse_trip(data)
        path = decode_polyline(shape, precision=self.precision)

        logger.info(f"✓ Route: {duration:.0f}s, {len(path)} points")
        return Route(duration_seconds=duration, path=tuple(path))

    def _parse_trip(self, data: Dict[str, Any]) -> Tuple[float, str]:
        """Extract ``summary.time`` and the first leg's shape"""

        trip = data.get("trip")
        if not isinstance(trip, dict):
            message = data.get("error") or "no trip in response"
            logger.warning(f"Routing engine returned no trip: {message}")
            raise RouteNotFoundError(f"No route found: {message}")

        legs = trip.get("legs") or []
        shape = legs[0].get("shape") if legs and isinstance(legs[0], dict) else None
        if not shape:
            raise RouteNotFoundError("Route has no usable leg")

        time = (trip.get("summary") or {}).get("time")
        if not isinstance(time, (int, float)) or isinstance(time, bool) or time < 0:
            raise RouteNotFoundError(f"Route has an invalid duration: {time!r}")

        return float(time), shape


routing_cache: AsyncCache[str, Route] = AsyncCache("route_walk")
routing_service = RoutingService()
