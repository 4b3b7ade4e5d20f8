"""
Tests for the bounding-box radius approximation.
"""

import math

import pytest

from app.services import geo
from app.services.geo import BoundingBox, bounding_box, degree_deltas, route_bounding_box, within_radius
from app.services.route_matcher import distance

CENTER = (50.0, 20.0)


def offset(lat, lon, north_m=0.0, east_m=0.0):
    """Move a point using the same meters-per-degree figure as the filter"""
    return (
        lat + north_m / geo.METERS_PER_DEGREE,
        lon + east_m / (geo.METERS_PER_DEGREE * math.cos(math.radians(lat))),
    )


class TestWithinRadius:

    @pytest.mark.parametrize("north_m,east_m", [(900, 0), (0, 900), (-900, 0), (0, -900)])
    def test_inside(self, north_m, east_m):
        assert within_radius(*CENTER, 1000, *offset(*CENTER, north_m, east_m))

    @pytest.mark.parametrize("north_m,east_m", [(1100, 0), (0, 1100), (-1100, 0), (0, -1100)])
    def test_outside(self, north_m, east_m):
        assert not within_radius(*CENTER, 1000, *offset(*CENTER, north_m, east_m))

    def test_corner_matches_beyond_radius(self):
        corner = offset(*CENTER, 900, 900)

        assert within_radius(*CENTER, 1000, *corner)
        assert distance(CENTER, corner) > 1000

    def test_missing_coordinates_never_match(self):
        assert not within_radius(*CENTER, 1000, None, 20.0)
        assert not within_radius(*CENTER, 1000, 50.0, None)


class TestDegreeDeltas:

    def test_longitude_delta_widens_with_latitude(self):
        lat_delta, lon_delta = degree_deltas(60.0, 1000)

        assert lat_delta == pytest.approx(1000 / 111_000)
        assert lon_delta == pytest.approx(2 * lat_delta)

    def test_equator(self):
        lat_delta, lon_delta = degree_deltas(0.0, 500)

        assert lon_delta == pytest.approx(lat_delta)

    def test_zero_cosine_falls_back(self, monkeypatch):
        monkeypatch.setattr(geo.math, "cos", lambda _: 0.0)

        lat_delta, lon_delta = degree_deltas(90.0, 1000)

        assert lon_delta == lat_delta

    def test_pole_cosine_is_not_exactly_zero(self):
        lat_delta, lon_delta = degree_deltas(90.0, 1000)

        assert lon_delta > 1e6 * lat_delta

    def test_southern_hemisphere_is_symmetric(self):
        assert degree_deltas(-50.0, 1000) == pytest.approx(degree_deltas(50.0, 1000))


class TestRouteBoundingBox:

    def test_empty_route(self):
        assert route_bounding_box([], 300) is None

    def test_covers_every_point_box(self):
        points = [(50.0, 20.0), (50.1, 19.9), (49.95, 20.2)]

        box = route_bounding_box(points, 300)

        for lat, lon in points:
            point_box = bounding_box(lat, lon, 300)
            assert box.min_lat <= point_box.min_lat and box.max_lat >= point_box.max_lat
            assert box.min_lon <= point_box.min_lon and box.max_lon >= point_box.max_lon

    def test_single_point(self):
        assert route_bounding_box([CENTER], 300) == bounding_box(*CENTER, 300)

    def test_expand(self):
        a = BoundingBox(0, 1, 0, 1)
        b = BoundingBox(-1, 0.5, 0.5, 2)

        assert a.expand(b) == BoundingBox(-1, 1, 0, 2)
