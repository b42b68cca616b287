import asyncio
import base64
import logging
from typing import Optional, Sequence

import httpx

from sanpo.core.config import settings
from sanpo.core.exceptions import FetchError, GeometryError
from sanpo.models.domain import BoundingBox, EncodedImage, LonLat

logger = logging.getLogger(__name__)

# Smallest padding in degrees, so very short routes still get some context
MIN_PADDING_DEG = 0.0005

IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)
DEFAULT_MEDIA_TYPE = "image/png"

# What the vision models accept; other labels are re-detected from the bytes
SUPPORTED_MEDIA_TYPES = frozenset(
    {media_type for _, media_type in IMAGE_SIGNATURES} | {"image/webp"}
)


def route_bounding_box(path: Sequence[LonLat], padding_ratio: float = 0.0) -> BoundingBox:
    """Padded bounding box around a route geometry"""

    if len(set(path)) < 2:
        raise GeometryError("Route geometry needs at least two distinct points")

    lons = [lon for lon, _ in path]
    lats = [lat for _, lat in path]
    min_lon, max_lon = min(lons), max(lons)
    min_lat, max_lat = min(lats), max(lats)

    pad_lon = max((max_lon - min_lon) * padding_ratio, MIN_PADDING_DEG)
    pad_lat = max((max_lat - min_lat) * padding_ratio, MIN_PADDING_DEG)

    return BoundingBox(
        min_lon=max(min_lon - pad_lon, -180.0),
        min_lat=max(min_lat - pad_lat, -90.0),
        max_lon=min(max_lon + pad_lon, 180.0),
        max_lat=min(max_lat + pad_lat, 90.0),
    )


def detect_media_type(content: bytes, declared: Optional[str]) -> str:
    """Image media type for ``content``, correcting generic labels"""

    declared = (declared or "").split(";")[0].strip().lower()
    if declared in SUPPORTED_MEDIA_TYPES:
        return declared

    for signature, media_type in IMAGE_SIGNATURES:
        if content.startswith(signature):
            return media_type
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"

    return DEFAULT_MEDIA_TYPE


class ImageryService:
    """Satellite imagery of a route from the ArcGIS World Imagery export API"""

    def __init__(
        self,
        export_url: Optional[str] = None,
        size_px: Optional[int] = None,
        padding_ratio: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.export_url = export_url or settings.IMAGERY_EXPORT_URL
        self.size_px = size_px or settings.IMAGERY_SIZE_PX
        self.padding_ratio = (
            settings.IMAGERY_PADDING_RATIO if padding_ratio is None else padding_ratio
        )
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.transport = transport

    def build_imagery_url(self, path: Sequence[LonLat]) -> str:
        bbox = route_bounding_box(path, self.padding_ratio)
        params = {
            "bbox": bbox.as_param(),
            "bboxSR": 4326,
            "imageSR": 3857,
            "size": f"{self.size_px},{self.size_px}",
            "format": "png",
            "transparent": "false",
            "f": "image",
        }
        return str(httpx.URL(self.export_url, params=params))

    async def fetch_image(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(url)
            except httpx.HTTPError as exc:
                logger.error(f"Imagery request failed: {exc}")
                raise FetchError(f"Imagery request failed: {exc}") from exc

        if not response.is_success:
            logger.error(f"Imagery service error: {response.status_code}")
            raise FetchError(f"Imagery service answered {response.status_code}")

        if not response.content:
            raise FetchError("Imagery service returned an empty body")

        return response

    async def encode_image(self, response: httpx.Response) -> EncodedImage:
        content = response.content
        media_type = detect_media_type(content, response.headers.get("content-type"))
        data = await asyncio.to_thread(base64.b64encode, content)
        return EncodedImage(media_type=media_type, data=data.decode("ascii"))

    async def get_route_imagery(self, path: Sequence[LonLat]) -> EncodedImage:
        """Fetch and base64-encode the satellite image covering ``path``"""

        url = self.build_imagery_url(path)
        logger.debug(f"Imagery URL: {url}")

        response = await self.fetch_image(url)
        image = await self.encode_image(response)

        logger.info(f"✓ Imagery: {len(response.content)} bytes as {image.media_type}")
        return image


imagery_service = ImageryService()
