"""
Approximate "within radius" filtering.

A (center, radius) query is turned into a latitude/longitude rectangle that
encloses the circle. The rectangle is cheap to evaluate in SQL and can use the
lat/lon indexes, but it is not a circle: points near the corners of the box
can be up to sqrt(2) * radius away from the center and still match. Callers
that need an exact distance use `app.services.route_matcher.distance`.

The longitude window divides by cos(latitude). Only an exact zero cosine is
replaced by 1; at the poles floating point gives about 6e-17 instead, so the
window there becomes enormous rather than falling back.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

METERS_PER_DEGREE = 111_000

LatLon = Tuple[float, float]


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, lat: Optional[float], lon: Optional[float]) -> bool:
        if lat is None or lon is None:
            return False
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def expand(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            min_lat=min(self.min_lat, other.min_lat),
            max_lat=max(self.max_lat, other.max_lat),
            min_lon=min(self.min_lon, other.min_lon),
            max_lon=max(self.max_lon, other.max_lon),
        )

    def as_predicate(self, lat_column, lon_column) -> ColumnElement:
        """SQL predicate over the given latitude/longitude columns."""
        return and_(
            lat_column.between(self.min_lat, self.max_lat),
            lon_column.between(self.min_lon, self.max_lon),
        )


def degree_deltas(center_lat: float, radius_meters: float) -> Tuple[float, float]:
    lat_delta = radius_meters / METERS_PER_DEGREE
    cos_lat = math.cos(math.radians(center_lat))
    if cos_lat == 0:
        cos_lat = 1
    lon_delta = radius_meters / (METERS_PER_DEGREE * cos_lat)
    return lat_delta, abs(lon_delta)


def bounding_box(center_lat: float, center_lon: float, radius_meters: float) -> BoundingBox:
    lat_delta, lon_delta = degree_deltas(center_lat, radius_meters)
    return BoundingBox(
        min_lat=center_lat - lat_delta,
        max_lat=center_lat + lat_delta,
        min_lon=center_lon - lon_delta,
        max_lon=center_lon + lon_delta,
    )


def within_radius(
    center_lat: float, center_lon: float, radius_meters: float, lat: Optional[float], lon: Optional[float]
) -> bool:
    return bounding_box(center_lat, center_lon, radius_meters).contains(lat, lon)


def route_bounding_box(points: Iterable[LatLon], radius_meters: float) -> Optional[BoundingBox]:
    """
    Smallest box covering the radius box of every route point.

    Returns None for an empty route.
    """
    box = None
    for lat, lon in points:
        point_box = bounding_box(lat, lon, radius_meters)
        box = point_box if box is None else box.expand(point_box)
    return box
