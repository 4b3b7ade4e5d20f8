from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Line, Stop, VehicleType
from app.services.geo import bounding_box


async def get_line(db: AsyncSession, id: str) -> Optional[Line]:
    """
    Get a line by ID.
    """
    result = await db.execute(select(Line).filter(Line.id == id))
    return result.scalars().first()


async def get_stop(db: AsyncSession, id: str) -> Optional[Stop]:
    """
    Get a stop by ID.
    """
    result = await db.execute(select(Stop).filter(Stop.id == id))
    return result.scalars().first()


async def get_stops(
    db: AsyncSession,
    name: Optional[str] = None,
    type: Optional[VehicleType] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_meters: Optional[float] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Stop]:
    """
    Get stops, optionally near a point, ordered by name.
    """
    query = select(Stop)
    if type:
        query = query.filter(Stop.type == type)
    if name:
        query = query.filter(Stop.name.ilike(f"%{name}%"))
    if latitude is not None and longitude is not None and radius_meters:
        box = bounding_box(latitude, longitude, radius_meters)
        query = query.filter(box.as_predicate(Stop.latitude, Stop.longitude))

    result = await db.execute(query.order_by(Stop.name, Stop.id).offset(skip).limit(limit))
    return result.scalars().all()
