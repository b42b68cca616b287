import logging
from typing import Any, Dict, Optional

from sanpo.core.config import settings
from sanpo.core.exceptions import NotFoundError, ServiceError
from sanpo.models.domain import Coordinate
from sanpo.services.cache import AsyncCache, make_cache_key
from sanpo.services.osm_client import OSMClient, osm_client

logger = logging.getLogger(__name__)


def normalize_place_name(name: str) -> str:
    return " ".join(name.split()).casefold()


class GeocodingService:
    """Resolves place names to coordinates via Nominatim"""

    def __init__(
        self,
        client: Optional[OSMClient] = None,
        cache: Optional[AsyncCache[str, Coordinate]] = None,
        candidate_rank: Optional[int] = None,
    ):
        self.client = client or osm_client
        self.cache = cache if cache is not None else geocoding_cache
        self.candidate_rank = (
            settings.GEOCODING_CANDIDATE_RANK if candidate_rank is None else candidate_rank
        )

    async def geocode(self, place_name: str) -> Coordinate:
        """Coordinate of the preferred candidate for ``place_name``"""

        normalized = normalize_place_name(place_name)
        if not normalized:
            raise NotFoundError("Empty place name")

        key = make_cache_key("geocode", {"q": normalized, "rank": self.candidate_rank})
        return await self.cache.get(key, lambda: self._lookup(place_name))

    async def _lookup(self, place_name: str) -> Coordinate:
        candidates = await self.client.search(place_name)
        if len(candidates) <= self.candidate_rank:
            logger.warning(f"No geocoding match for {place_name!r}")
            raise NotFoundError(f"Location not found: {place_name}")

        coords = self._to_coordinate(candidates[self.candidate_rank], place_name)
        logger.info(f"✓ Geocoded: {place_name} → ({coords.lat}, {coords.lon})")
        return coords

    def _to_coordinate(self, candidate: Dict[str, Any], place_name: str) -> Coordinate:
        try:
            return Coordinate(lat=float(candidate["lat"]), lon=float(candidate["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(f"Unusable geocoding candidate for {place_name!r}: {candidate}")
            raise ServiceError(f"Geocoder returned an invalid match for {place_name}") from exc


geocoding_cache: AsyncCache[str, Coordinate] = AsyncCache("geocode")
geocoding_service = GeocodingService()
