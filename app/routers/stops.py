from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.transport import get_stops
from app.db.session import get_db
from app.models import VehicleType
from app.schemas import Stop

router = APIRouter()


@router.get("/stops", response_model=List[Stop])
async def read_stops(
    name: Optional[str] = None,
    type: Optional[VehicleType] = None,
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_meters: Optional[float] = Query(None, gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Retrieve stops, optionally only those near a point.
    """
    return await get_stops(
        db,
        name=name,
        type=type,
        latitude=latitude,
        longitude=longitude,
        radius_meters=radius_meters,
        skip=skip,
        limit=limit,
    )
