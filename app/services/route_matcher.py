"""
Exact proximity of points to a densified route.

Unlike the bounding-box radius filter, everything here uses the haversine
great-circle distance, since it decides whether a rider is told an incident
lies on their way.
"""
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

EARTH_RADIUS_METERS = 6_371_000

LatLon = Tuple[float, float]
T = TypeVar("T")


def distance(a: LatLon, b: LatLon) -> float:
    lat1, lon1 = a
    lat2, lon2 = b
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    s = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(s), math.sqrt(1 - s))


@dataclass(frozen=True)
class RouteProximity:
    is_near: bool
    nearest_point: Optional[LatLon] = None
    distance: Optional[float] = None


def near_route(point: LatLon, route_points: Sequence[LatLon], max_distance_meters: float) -> RouteProximity:
    if not route_points:
        return RouteProximity(is_near=False)

    nearest_distance = math.inf
    nearest_point = None
    # full scan, the minimum must not depend on point order
    for route_point in route_points:
        d = distance(point, route_point)
        if d < nearest_distance:
            nearest_distance = d
            nearest_point = route_point

    return RouteProximity(
        is_near=nearest_distance <= max_distance_meters,
        nearest_point=nearest_point,
        distance=nearest_distance,
    )


def match_candidates(
    candidates: Iterable[T],
    route_points: Sequence[LatLon],
    max_distance_meters: float,
    locate: Callable[[T], Optional[LatLon]],
) -> List[Tuple[T, RouteProximity]]:
    """
    Candidates near the route, each paired with its proximity result.

    Candidates `locate` cannot place (no coordinates) never match.
    """
    matches = []
    for candidate in candidates:
        position = locate(candidate)
        if position is None:
            continue
        proximity = near_route(position, route_points, max_distance_meters)
        if proximity.is_near:
            matches.append((candidate, proximity))
    return matches


def filter_candidates(
    candidates: Iterable[T],
    route_points: Sequence[LatLon],
    max_distance_meters: float,
    locate: Callable[[T], Optional[LatLon]],
) -> List[T]:
    return [c for c, _ in match_candidates(candidates, route_points, max_distance_meters, locate)]
