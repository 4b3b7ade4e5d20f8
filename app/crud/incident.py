import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import utcnow
from app.core.errors import InputNotValidError, ResourceNotFoundError
from app.crud.transport import get_line, get_stop
from app.models import Incident, Stop, Vote, VoteType
from app.schemas.incident import IncidentCreate, IncidentFilters, LineAnchor, resolve_anchor
from app.services.geo import bounding_box, route_bounding_box
from app.services.route_matcher import LatLon, RouteProximity, match_candidates

logger = logging.getLogger("app.incidents")

DEFAULT_ACTIVE_WINDOW = timedelta(hours=1)
# compare-and-set attempts for concurrent extensions
EXTEND_ATTEMPTS = 5


def incident_location(incident: Incident) -> Optional[LatLon]:
    """
    Where an incident is on the map: its own coordinates, else its stop's.
    """
    if incident.latitude is not None and incident.longitude is not None:
        return incident.latitude, incident.longitude
    if incident.stop_id is not None and incident.stop is not None:
        return incident.stop.latitude, incident.stop.longitude
    return None


async def get_incident(db: AsyncSession, id: int) -> Optional[Incident]:
    """
    Get an incident by ID.
    """
    result = await db.execute(
        select(Incident).filter(Incident.id == id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


def _apply_filters(query, filters: IncidentFilters, now: datetime):
    if filters.line_id:
        query = query.filter(Incident.line_id == filters.line_id)
    if filters.line_direction:
        query = query.filter(Incident.line_direction == filters.line_direction)
    if filters.stop_id:
        query = query.filter(Incident.stop_id == filters.stop_id)
    if filters.priority:
        query = query.filter(Incident.priority == filters.priority)
    if filters.is_active is not None:
        if filters.is_active:
            query = query.filter(or_(Incident.end_time.is_(None), Incident.end_time > now))
        else:
            query = query.filter(Incident.end_time <= now)
    if (
        filters.latitude is not None
        and filters.longitude is not None
        and filters.radius_meters is not None
        and filters.radius_meters > 0
    ):
        box = bounding_box(filters.latitude, filters.longitude, filters.radius_meters)
        query = query.filter(box.as_predicate(*_location_columns()))
    return query


def _location_columns():
    return (
        func.coalesce(Incident.latitude, Stop.latitude),
        func.coalesce(Incident.longitude, Stop.longitude),
    )


def _base_query():
    return select(Incident).outerjoin(Stop, Incident.stop_id == Stop.id)


async def get_incidents(
    db: AsyncSession,
    filters: Optional[IncidentFilters] = None,
    skip: int = 0,
    limit: Optional[int] = 100,
    now: Optional[datetime] = None,
) -> List[Incident]:
    """
    Get incidents matching the filters, oldest first.
    """
    now = now or utcnow()
    query = _apply_filters(_base_query(), filters or IncidentFilters(), now)
    query = query.order_by(Incident.created_at, Incident.id).offset(skip)
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query.options(selectinload(Incident.stop)))
    return result.scalars().all()


async def count_incidents(
    db: AsyncSession, filters: Optional[IncidentFilters] = None, now: Optional[datetime] = None
) -> int:
    now = now or utcnow()
    query = _apply_filters(_base_query(), filters or IncidentFilters(), now)
    result = await db.execute(select(func.count()).select_from(query.subquery()))
    return result.scalar_one()


async def get_vote_tallies(db: AsyncSession, incident_ids: Sequence[int]) -> Dict[int, Tuple[int, int]]:
    """
    Map of incident id -> (confirm votes, reject votes).
    """
    if not incident_ids:
        return {}
    query = (
        select(
            Vote.incident_id,
            func.sum(case((Vote.vote_type == VoteType.CONFIRM, 1), else_=0)),
            func.sum(case((Vote.vote_type == VoteType.REJECT, 1), else_=0)),
        )
        .filter(Vote.incident_id.in_(incident_ids))
        .group_by(Vote.incident_id)
    )
    result = await db.execute(query)
    tallies = {id: (0, 0) for id in incident_ids}
    for incident_id, confirms, rejects in result.all():
        tallies[incident_id] = (int(confirms or 0), int(rejects or 0))
    return tallies


async def get_incidents_near_route(
    db: AsyncSession,
    route_points: Sequence[LatLon],
    radius_meters: float,
    filters: Optional[IncidentFilters] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Tuple[Incident, RouteProximity]]:
    """
    Incidents within `radius_meters` (great-circle) of any route point.

    A bounding box around the whole route narrows the query, the exact
    distance check runs on what comes back.
    """
    if not route_points:
        return []
    now = now or utcnow()
    box = route_bounding_box(route_points, radius_meters)
    query = _apply_filters(_base_query(), filters or IncidentFilters(), now)
    query = query.filter(box.as_predicate(*_location_columns()))
    query = query.order_by(Incident.created_at, Incident.id).options(selectinload(Incident.stop))

    result = await db.execute(query)
    matches = match_candidates(result.scalars().all(), route_points, radius_meters, incident_location)
    if limit is not None:
        matches = matches[:limit]
    return matches


async def create_incident(
    db: AsyncSession, obj_in: IncidentCreate, user_id: str, now: Optional[datetime] = None
) -> Incident:
    """
    Create a new incident anchored to exactly one line or stop.
    """
    anchor = resolve_anchor(obj_in)

    if isinstance(anchor, LineAnchor):
        if not await get_line(db, id=anchor.line_id):
            logger.warning(f"Incident rejected - unknown line: line_id={anchor.line_id}")
            raise ResourceNotFoundError("Line", anchor.line_id)
        anchor_fields = dict(line_id=anchor.line_id, line_direction=anchor.direction)
    else:
        if not await get_stop(db, id=anchor.stop_id):
            logger.warning(f"Incident rejected - unknown stop: stop_id={anchor.stop_id}")
            raise ResourceNotFoundError("Stop", anchor.stop_id)
        anchor_fields = dict(stop_id=anchor.stop_id)

    now = now or utcnow()
    db_obj = Incident(
        type=obj_in.type,
        priority=obj_in.priority,
        description=obj_in.description,
        latitude=anchor.location.lat if anchor.location else None,
        longitude=anchor.location.lon if anchor.location else None,
        start_time=now,
        end_time=now + DEFAULT_ACTIVE_WINDOW,
        created_by=user_id,
        created_at=now,
        updated_at=now,
        **anchor_fields,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)

    logger.info(f"Incident created: incident_id={db_obj.id}, type={db_obj.type.value}, priority={db_obj.priority.value}")
    return db_obj


async def close_incident(db: AsyncSession, id: int, now: Optional[datetime] = None) -> bool:
    """
    Close an incident by setting its end time to now.

    Returns False when the incident was already closed, which is not an error.
    """
    now = now or utcnow()
    result = await db.execute(
        update(Incident)
        .where(Incident.id == id)
        .where(or_(Incident.end_time.is_(None), Incident.end_time > now))
        .values(end_time=now, updated_at=now)
    )
    await db.commit()
    return result.rowcount > 0


async def extend_incident_end_time(
    db: AsyncSession, id: int, hours: float, now: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Push the end time of an active incident `hours` further.

    No-op (returns None) when the incident has no end time or is already
    closed. The update only applies if the end time is unchanged since it was
    read, so a concurrent close is never overwritten.
    """
    if hours <= 0:
        raise InputNotValidError("hours must be positive", reason="invalid_hours", value={"hours": hours})
    now = now or utcnow()

    for _ in range(EXTEND_ATTEMPTS):
        result = await db.execute(select(Incident.end_time).where(Incident.id == id))
        end_time = result.scalar_one_or_none()
        if end_time is None or end_time <= now:
            return None

        new_end_time = end_time + timedelta(hours=hours)
        result = await db.execute(
            update(Incident)
            .where(Incident.id == id)
            .where(Incident.end_time == end_time)
            .values(end_time=new_end_time, updated_at=now)
        )
        await db.commit()
        if result.rowcount > 0:
            return new_end_time

    logger.warning(f"Incident end time not extended after {EXTEND_ATTEMPTS} attempts: incident_id={id}")
    return None
