"""Encoded polyline codec.

Valhalla emits shapes in the Google polyline format with six decimal digits of
precision. Points are returned in GeoJSON order, ``(lon, lat)``.
"""

from typing import Iterable, List

from sanpo.core.exceptions import DecodeError
from sanpo.models.domain import LonLat

DEFAULT_PRECISION = 6

# Seven 5-bit chunks cover any valid coordinate delta up to precision 7
_MAX_CHUNK_SHIFT = 30


def _decode_values(encoded: str) -> List[int]:
    values: List[int] = []
    index = 0
    length = len(encoded)

    while index < length:
        result = 0
        shift = 0
        while True:
            if index >= length:
                raise DecodeError("Polyline ends in the middle of a value")
            chunk = ord(encoded[index]) - 63
            index += 1
            if chunk < 0 or chunk > 63:
                raise DecodeError(f"Invalid polyline character at position {index - 1}")
            if shift > _MAX_CHUNK_SHIFT:
                raise DecodeError("Polyline delta out of range")
            result |= (chunk & 0x1F) << shift
            shift += 5
            if chunk < 0x20:
                break
        values.append(~(result >> 1) if result & 1 else result >> 1)

    return values


def decode_polyline(encoded: str, precision: int = DEFAULT_PRECISION) -> List[LonLat]:
    """Decode an encoded polyline into ``(lon, lat)`` pairs.

    Raises DecodeError for malformed input instead of returning a partial path.
    """

    if not encoded:
        raise DecodeError("Empty polyline")

    values = _decode_values(encoded)
    if len(values) % 2:
        raise DecodeError("Polyline holds an odd number of values")

    factor = 10 ** precision
    lat = 0
    lon = 0
    points: List[LonLat] = []
    for d_lat, d_lon in zip(values[0::2], values[1::2]):
        lat += d_lat
        lon += d_lon
        point_lat = lat / factor
        point_lon = lon / factor
        if not (-90.0 <= point_lat <= 90.0 and -180.0 <= point_lon <= 180.0):
            raise DecodeError(f"Decoded coordinate out of range: ({point_lat}, {point_lon})")
        points.append((point_lon, point_lat))

    if len(points) < 2:
        raise DecodeError(f"Polyline decodes to {len(points)} point(s), need at least 2")

    return points


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[LonLat], precision: int = DEFAULT_PRECISION) -> str:
    """Encode ``(lon, lat)`` pairs the way the routing engine does."""

    factor = 10 ** precision
    prev_lat = 0
    prev_lon = 0
    parts = []
    for lon, lat in points:
        lat_i = int(round(lat * factor))
        lon_i = int(round(lon * factor))
        parts.append(_encode_value(lat_i - prev_lat))
        parts.append(_encode_value(lon_i - prev_lon))
        prev_lat, prev_lon = lat_i, lon_i
    return "".join(parts)
