from typing import Any, List, Literal

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.crud.subscription import (
    create_area_subscription,
    create_line_subscription,
    delete_subscription,
    get_area_subscriptions,
    get_line_subscriptions,
)
from app.db.session import get_db
from app.schemas import AreaSubscription, AreaSubscriptionCreate, LineSubscription, LineSubscriptionCreate

router = APIRouter()


@router.post("/subscriptions/lines", response_model=LineSubscription, status_code=status.HTTP_201_CREATED)
async def create_new_line_subscription(
    subscription_in: LineSubscriptionCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await create_line_subscription(db, obj_in=subscription_in, user_id=user_id)


@router.post("/subscriptions/areas", response_model=AreaSubscription, status_code=status.HTTP_201_CREATED)
async def create_new_area_subscription(
    subscription_in: AreaSubscriptionCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await create_area_subscription(db, obj_in=subscription_in, user_id=user_id)


@router.get("/subscriptions/lines", response_model=List[LineSubscription])
async def read_line_subscriptions(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await get_line_subscriptions(db, user_id=user_id)


@router.get("/subscriptions/areas", response_model=List[AreaSubscription])
async def read_area_subscriptions(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await get_area_subscriptions(db, user_id=user_id)


@router.delete("/subscriptions/{kind}/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription_by_id(
    kind: Literal["lines", "areas"],
    subscription_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Delete one of the caller's subscriptions.
    """
    await delete_subscription(db, kind=kind, id=subscription_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
