import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from starlette.websockets import WebSocketState
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_clock, get_current_user_id, get_session_factory
from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import InputNotValidError, ResourceNotFoundError
from app.crud.incident import (
    count_incidents,
    create_incident,
    get_incident,
    get_incidents,
    get_incidents_near_route,
    get_vote_tallies,
)
from app.crud.subscription import find_subscribers_for_incident
from app.db.session import get_db
from app.models import Incident, Priority
from app.schemas import Coordinate, IncidentCreate, IncidentFilters, IncidentOnRoute, IncidentWithVotes
from app.schemas import Incident as IncidentSchema
from app.schemas import PaginatedIncidents, RouteQuery, Vote, VoteCreate
from app.services import polyline
from app.services.consensus import ConsensusAction, vote_on_incident
from app.services.redis import notify_users, publish_incident_event
from app.services.route_matcher import LatLon, RouteProximity
from app.services.route_monitor import MonitorUpdate, RouteIncidentMonitor
from app.services.websocket_manager import route_monitor_manager

logger = logging.getLogger("app.incidents")

router = APIRouter()


def _with_votes(incident: Incident, tallies: Dict[int, Tuple[int, int]]) -> IncidentWithVotes:
    confirm_votes, reject_votes = tallies.get(incident.id, (0, 0))
    return IncidentWithVotes(
        **IncidentSchema.model_validate(incident).model_dump(),
        confirm_votes=confirm_votes,
        reject_votes=reject_votes,
    )


def route_points_for(query: RouteQuery) -> List[LatLon]:
    """
    Decode and densify the route described by a query.
    """
    if query.polyline is not None:
        if len(query.polyline) > settings.ROUTE_MAX_POLYLINE_LENGTH:
            raise InputNotValidError(
                "Polyline is too long",
                reason="route_too_large",
                value={"polyline_length": len(query.polyline), "max": settings.ROUTE_MAX_POLYLINE_LENGTH},
            )
        try:
            points = polyline.decode(query.polyline)
        except ValueError as e:
            raise InputNotValidError(str(e), reason="invalid_polyline", value={"polyline": query.polyline})
    else:
        points = [(p.lat, p.lon) for p in query.points]

    if len(points) > settings.ROUTE_MAX_POINTS:
        raise InputNotValidError(
            "Route has too many points",
            reason="route_too_large",
            value={"points": len(points), "max": settings.ROUTE_MAX_POINTS},
        )

    interval = query.interpolation_meters or settings.ROUTE_INTERPOLATION_METERS
    size = polyline.interpolated_size(points, interval)
    if size > settings.ROUTE_MAX_INTERPOLATED_POINTS:
        raise InputNotValidError(
            "Route is too long for the interpolation interval",
            reason="route_too_large",
            value={"interpolated_points": size, "max": settings.ROUTE_MAX_INTERPOLATED_POINTS},
        )
    return polyline.interpolate(points, interval)


async def _incidents_on_route(
    db: AsyncSession, matches: Sequence[Tuple[Incident, RouteProximity]]
) -> List[IncidentOnRoute]:
    tallies = await get_vote_tallies(db, [incident.id for incident, _ in matches])
    results = []
    for incident, proximity in matches:
        lat, lon = proximity.nearest_point
        results.append(
            IncidentOnRoute(
                **_with_votes(incident, tallies).model_dump(),
                distance_meters=proximity.distance,
                nearest_point=Coordinate(lat=lat, lon=lon),
            )
        )
    return results


async def find_route_incidents(
    db: AsyncSession, query: RouteQuery, route_points: Sequence[LatLon], clock: Clock
) -> List[IncidentOnRoute]:
    matches = await get_incidents_near_route(
        db,
        route_points,
        radius_meters=query.radius_meters or settings.ROUTE_RADIUS_METERS,
        filters=IncidentFilters(is_active=query.is_active, priority=query.priority),
        limit=query.limit or settings.ROUTE_RESULT_LIMIT,
        now=clock.now(),
    )
    return await _incidents_on_route(db, matches)


@router.post("/incidents", response_model=IncidentSchema, status_code=status.HTTP_201_CREATED)
async def create_new_incident(
    incident_in: IncidentCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Any:
    """
    Report a new incident on a line or at a stop.
    """
    incident = await create_incident(db, obj_in=incident_in, user_id=user_id, now=clock.now())
    payload = IncidentSchema.model_validate(incident).model_dump(mode="json")

    await publish_incident_event("incident_created", incident.id, payload)
    subscribers = [s for s in await find_subscribers_for_incident(db, incident) if s != user_id]
    if subscribers:
        await notify_users(subscribers, "incident_created", payload)
    return incident


@router.get("/incidents", response_model=PaginatedIncidents)
async def read_incidents(
    line_id: Optional[str] = None,
    line_direction: Optional[str] = None,
    stop_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    priority: Optional[Priority] = None,
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_meters: Optional[float] = Query(None, gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Any:
    """
    Retrieve incidents with their vote counts, oldest first.
    """
    filters = IncidentFilters(
        line_id=line_id,
        line_direction=line_direction,
        stop_id=stop_id,
        is_active=is_active,
        priority=priority,
        latitude=latitude,
        longitude=longitude,
        radius_meters=radius_meters,
    )
    now = clock.now()
    incidents = await get_incidents(db, filters=filters, skip=skip, limit=limit, now=now)
    total = await count_incidents(db, filters=filters, now=now)
    tallies = await get_vote_tallies(db, [incident.id for incident in incidents])
    return PaginatedIncidents(data=[_with_votes(i, tallies) for i in incidents], total=total)


@router.post("/incidents/route", response_model=List[IncidentOnRoute])
async def read_route_incidents(
    query: RouteQuery,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Any:
    """
    Incidents within a distance of a planned route.
    """
    return await find_route_incidents(db, query, route_points_for(query), clock)


@router.get("/incidents/{incident_id}", response_model=IncidentWithVotes)
async def read_incident(
    incident_id: int,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Get incident by ID.
    """
    incident = await get_incident(db, id=incident_id)
    if not incident:
        raise ResourceNotFoundError("Incident", incident_id)
    tallies = await get_vote_tallies(db, [incident.id])
    return _with_votes(incident, tallies)


@router.post("/incidents/{incident_id}/votes", response_model=Vote, status_code=status.HTTP_201_CREATED)
async def vote_incident(
    incident_id: int,
    vote_in: VoteCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Any:
    """
    Confirm or reject an incident. Enough rejects close it, every third
    confirm extends it.
    """
    vote, outcome = await vote_on_incident(
        db, user_id=user_id, incident_id=incident_id, vote_type=vote_in.vote_type, now=clock.now()
    )

    await publish_incident_event(
        "vote_recorded",
        incident_id,
        {
            "vote_type": vote.vote_type.value,
            "confirm_votes": outcome.confirm_votes,
            "reject_votes": outcome.reject_votes,
        },
    )
    if outcome.action is ConsensusAction.CLOSED:
        await publish_incident_event("incident_closed", incident_id, {"end_time": outcome.end_time})
    elif outcome.action is ConsensusAction.EXTENDED:
        await publish_incident_event("incident_extended", incident_id, {"end_time": outcome.end_time})
    return vote


def _update_message(update: MonitorUpdate) -> dict:
    return {
        "type": "incidents",
        "data": {
            "incidents": [i.model_dump(mode="json") for i in update.incidents],
            "added": update.added,
            "removed": update.removed,
            "last_updated": update.last_updated.isoformat() if update.last_updated else None,
            "error": update.error,
        },
    }


@router.websocket("/incidents/route/ws")
async def route_incidents_websocket(
    websocket: WebSocket,
    clock: Clock = Depends(get_clock),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Live incidents along a route.

    The client sends {"type": "route", ...route query...} to start or replace
    monitoring and {"type": "stop"} to pause it. Every poll is pushed back as
    an "incidents" message.
    """
    await websocket.accept()

    try:
        while True:
            data = await websocket.receive_json()

            if data.get("type") == "route":
                try:
                    query = RouteQuery.model_validate({k: v for k, v in data.items() if k != "type"})
                    route_points = route_points_for(query)
                except (ValidationError, InputNotValidError) as e:
                    await route_monitor_manager.send_message(
                        websocket, {"type": "error", "detail": str(e)}
                    )
                    continue

                async def fetch(points, query=query):
                    async with session_factory() as db:
                        return await find_route_incidents(db, query, points, clock)

                async def push(update: MonitorUpdate):
                    await route_monitor_manager.send_message(websocket, _update_message(update))

                monitor = RouteIncidentMonitor(
                    fetch,
                    route_points,
                    on_update=push,
                    interval=settings.ROUTE_MONITOR_INTERVAL_SECONDS,
                    clock=clock.now,
                )
                await route_monitor_manager.attach(websocket, monitor)

            elif data.get("type") == "stop":
                await route_monitor_manager.detach(websocket)

    except WebSocketDisconnect:
        await route_monitor_manager.detach(websocket)

    except Exception:
        logger.exception("Route incidents WebSocket error")
        await route_monitor_manager.detach(websocket)
        if websocket.client_state != WebSocketState.DISCONNECTED:
            await websocket.close(code=1011)  # Internal error
