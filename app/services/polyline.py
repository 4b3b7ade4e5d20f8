"""
Encoded polyline codec and route densification.

The codec is the Google "encoded polyline" format: coordinates scaled by 1e5,
delta-encoded against the previous point, zig-zag signed and split into 5-bit
chunks offset by 63.
"""
from typing import List, Sequence, Tuple

from app.services.route_matcher import distance

LatLon = Tuple[float, float]

PRECISION = 1e5


def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    result = shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline")
        b = ord(encoded[index]) - 63
        index += 1
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index


def decode(encoded: str) -> List[LatLon]:
    points: List[LatLon] = []
    index = lat = lon = 0
    while index < len(encoded):
        dlat, index = _decode_value(encoded, index)
        dlon, index = _decode_value(encoded, index)
        lat += dlat
        lon += dlon
        points.append((lat / PRECISION, lon / PRECISION))
    return points


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode(points: Sequence[LatLon]) -> str:
    out = []
    prev_lat = prev_lon = 0
    for lat, lon in points:
        ilat = int(round(lat * PRECISION))
        ilon = int(round(lon * PRECISION))
        out.append(_encode_value(ilat - prev_lat))
        out.append(_encode_value(ilon - prev_lon))
        prev_lat, prev_lon = ilat, ilon
    return "".join(out)


def interpolate(points: Sequence[LatLon], interval_meters: float = 100) -> List[LatLon]:
    """
    Insert points along the route so consecutive points are at most
    `interval_meters` apart.

    Walking from the first point, whenever the next raw point is at least
    `interval_meters` away a new point is placed that far along the straight
    lat/lon segment and the walk continues from it. Otherwise the walk jumps to
    the raw point. Linear lat/lon interpolation is not geodesic but is close
    enough over city-scale segments.
    """
    if interval_meters <= 0:
        raise ValueError("interval_meters must be positive")
    if len(points) < 2:
        return list(points)

    result = [points[0]]
    current = points[0]
    next_index = 1

    while next_index < len(points):
        target = points[next_index]
        distance_to_next = distance(current, target)

        if distance_to_next >= interval_meters:
            ratio = interval_meters / distance_to_next
            step = (
                current[0] + (target[0] - current[0]) * ratio,
                current[1] + (target[1] - current[1]) * ratio,
            )
            if step == current:
                # step below float resolution, the walk would never move
                current = target
                next_index += 1
            else:
                current = step
        else:
            current = target
            next_index += 1
        result.append(current)

    return result


def route_length(points: Sequence[LatLon]) -> float:
    """Great-circle length of the route through `points`, in meters."""
    return sum(distance(a, b) for a, b in zip(points, points[1:]))


def interpolated_size(points: Sequence[LatLon], interval_meters: float) -> int:
    """
    Estimate of how many points `interpolate` returns, without building them.

    Each segment yields about its length divided by the interval plus its end
    point; the extra point per segment covers rounding.
    """
    if len(points) < 2:
        return len(points)
    return 2 * len(points) + int(route_length(points) // interval_meters)
