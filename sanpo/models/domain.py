from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

# (longitude, latitude), GeoJSON axis order
LonLat = Tuple[float, float]


def _check_range(lat: float, lon: float) -> None:
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"Longitude out of range: {lon}")


@dataclass(frozen=True)
class Coordinate:
    """WGS84 point in degrees."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        _check_range(self.lat, self.lon)


@dataclass(frozen=True)
class PlacePair:
    departure: str
    destination: str


@dataclass(frozen=True)
class Route:
    duration_seconds: float
    path: Tuple[LonLat, ...]

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError(f"Negative route duration: {self.duration_seconds}")
        if len(self.path) < 2:
            raise ValueError("Route path needs at least two points")

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"duration_seconds": self.duration_seconds},
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [list(point) for point in self.path],
                    },
                }
            ],
        }


@dataclass(frozen=True)
class EncodedImage:
    media_type: str
    data: str  # base64, no data-URL prefix

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


@dataclass(frozen=True)
class StatusEvent:
    sequence: int
    message: str
    run_id: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class BoundingBox:
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def as_param(self) -> str:
        return f"{self.min_lon},{self.min_lat},{self.max_lon},{self.max_lat}"

