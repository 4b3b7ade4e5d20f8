from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InputNotValidError, ResourceNotFoundError
from app.crud.transport import get_line, get_stop
from app.models import AreaSubscription, Incident, LineSubscription, Priority
from app.schemas import AreaSubscriptionCreate, LineSubscriptionCreate
from app.services.geo import within_radius

PRIORITY_ORDER = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL]


def priority_at_least(priority: Priority, minimum: Priority) -> bool:
    return PRIORITY_ORDER.index(priority) >= PRIORITY_ORDER.index(minimum)


async def create_line_subscription(
    db: AsyncSession, obj_in: LineSubscriptionCreate, user_id: str
) -> LineSubscription:
    """
    Subscribe a user to incidents on a line.
    """
    if not await get_line(db, id=obj_in.line_id):
        raise ResourceNotFoundError("Line", obj_in.line_id)

    db_obj = LineSubscription(
        user_id=user_id,
        line_id=obj_in.line_id,
        min_priority=obj_in.min_priority,
        is_active=obj_in.is_active,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def create_area_subscription(
    db: AsyncSession, obj_in: AreaSubscriptionCreate, user_id: str
) -> AreaSubscription:
    """
    Subscribe a user to incidents within a radius of a point.
    """
    if obj_in.radius_meters <= 0:
        raise InputNotValidError(
            "radius_meters must be positive",
            reason="invalid_radius",
            value={"radius_meters": obj_in.radius_meters},
        )

    db_obj = AreaSubscription(
        user_id=user_id,
        latitude=obj_in.latitude,
        longitude=obj_in.longitude,
        radius_meters=obj_in.radius_meters,
        min_priority=obj_in.min_priority,
        is_active=obj_in.is_active,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def get_line_subscriptions(db: AsyncSession, user_id: str) -> List[LineSubscription]:
    result = await db.execute(
        select(LineSubscription).filter(LineSubscription.user_id == user_id).order_by(LineSubscription.id)
    )
    return result.scalars().all()


async def get_area_subscriptions(db: AsyncSession, user_id: str) -> List[AreaSubscription]:
    result = await db.execute(
        select(AreaSubscription).filter(AreaSubscription.user_id == user_id).order_by(AreaSubscription.id)
    )
    return result.scalars().all()


async def find_area_subscriptions_covering(
    db: AsyncSession, latitude: float, longitude: float, priority: Optional[Priority] = None
) -> List[AreaSubscription]:
    """
    Active area subscriptions whose radius box contains the point.

    Each subscription has its own radius, so the box test runs per row.
    """
    result = await db.execute(
        select(AreaSubscription).filter(AreaSubscription.is_active.is_(True)).order_by(AreaSubscription.id)
    )
    matches = []
    for subscription in result.scalars().all():
        if priority is not None and not priority_at_least(priority, subscription.min_priority):
            continue
        if within_radius(
            subscription.latitude, subscription.longitude, subscription.radius_meters, latitude, longitude
        ):
            matches.append(subscription)
    return matches


async def delete_subscription(db: AsyncSession, kind: str, id: int, user_id: str) -> None:
    """
    Delete one of the user's subscriptions.
    """
    model = LineSubscription if kind == "lines" else AreaSubscription
    result = await db.execute(delete(model).where(model.id == id, model.user_id == user_id))
    await db.commit()
    if result.rowcount == 0:
        raise ResourceNotFoundError("Subscription", id)


async def find_line_subscriptions(
    db: AsyncSession, line_id: str, priority: Optional[Priority] = None
) -> List[LineSubscription]:
    """
    Active subscriptions to a line that accept the given priority.
    """
    result = await db.execute(
        select(LineSubscription)
        .filter(LineSubscription.line_id == line_id, LineSubscription.is_active.is_(True))
        .order_by(LineSubscription.id)
    )
    return [
        s for s in result.scalars().all()
        if priority is None or priority_at_least(priority, s.min_priority)
    ]


async def find_subscribers_for_incident(db: AsyncSession, incident: Incident) -> List[str]:
    """
    Users whose line or area subscriptions cover a new incident.
    """
    user_ids: List[str] = []
    if incident.line_id:
        user_ids.extend(s.user_id for s in await find_line_subscriptions(db, incident.line_id, incident.priority))

    latitude, longitude = incident.latitude, incident.longitude
    if (latitude is None or longitude is None) and incident.stop_id:
        stop = await get_stop(db, id=incident.stop_id)
        if stop is not None:
            latitude, longitude = stop.latitude, stop.longitude
    if latitude is not None and longitude is not None:
        user_ids.extend(
            s.user_id for s in await find_area_subscriptions_covering(db, latitude, longitude, incident.priority)
        )
    return list(dict.fromkeys(user_ids))
