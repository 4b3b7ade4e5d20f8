import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.errors import DuplicateVoteError, IncidentClosedError, ResourceNotFoundError
from app.crud.incident import get_incident
from app.models import Vote, VoteType

logger = logging.getLogger("app.votes")


async def get_vote_by_user_and_incident(db: AsyncSession, user_id: str, incident_id: int) -> Optional[Vote]:
    """
    Get the vote a user cast on an incident, if any.
    """
    result = await db.execute(
        select(Vote).filter(Vote.user_id == user_id, Vote.incident_id == incident_id)
    )
    return result.scalars().first()


async def count_votes_by_type(db: AsyncSession, incident_id: int, vote_type: VoteType) -> int:
    """
    Count committed votes of one type on an incident.
    """
    result = await db.execute(
        select(func.count(Vote.id)).filter(Vote.incident_id == incident_id, Vote.vote_type == vote_type)
    )
    return result.scalar_one()


async def record_vote(
    db: AsyncSession,
    user_id: str,
    incident_id: int,
    vote_type: VoteType,
    now: Optional[datetime] = None,
) -> Vote:
    """
    Record a user's vote on an incident.

    The lookup for an existing vote only gives an early, friendly error. The
    (user_id, incident_id) unique constraint is what rejects a concurrent
    duplicate that slipped past it.
    """
    now = now or utcnow()

    incident = await get_incident(db, id=incident_id)
    if not incident:
        raise ResourceNotFoundError("Incident", incident_id)

    if incident.is_closed_at(now):
        logger.warning(f"Vote rejected - incident closed: incident_id={incident_id}, user_id={user_id}")
        raise IncidentClosedError(incident_id, incident.end_time)

    if await get_vote_by_user_and_incident(db, user_id=user_id, incident_id=incident_id):
        logger.warning(f"Vote rejected - duplicate: incident_id={incident_id}, user_id={user_id}")
        raise DuplicateVoteError(user_id, incident_id)

    db_obj = Vote(
        user_id=user_id,
        incident_id=incident_id,
        vote_type=vote_type,
        created_at=now,
        updated_at=now,
    )
    db.add(db_obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Vote rejected - unique constraint: incident_id={incident_id}, user_id={user_id}")
        raise DuplicateVoteError(user_id, incident_id)
    await db.refresh(db_obj)

    logger.info(f"Vote recorded: vote_id={db_obj.id}, incident_id={incident_id}, vote_type={vote_type.value}")
    return db_obj
