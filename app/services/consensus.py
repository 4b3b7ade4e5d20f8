"""
Community consensus on incidents.

Every vote is followed by a threshold check over the committed vote counts:
enough rejects close the incident, every third confirm keeps it alive an hour
longer. Votes are neither weighted nor authenticated beyond the caller's user
id, so a handful of accounts can close any incident.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.crud.incident import close_incident, extend_incident_end_time
from app.crud.vote import count_votes_by_type, record_vote
from app.models import Vote, VoteType

logger = logging.getLogger("app.consensus")

REJECT_CLOSE_THRESHOLD = 5
CONFIRM_EXTEND_MULTIPLE = 3
EXTEND_HOURS = 1


class ConsensusAction(str, enum.Enum):
    NONE = "none"
    CLOSED = "closed"
    EXTENDED = "extended"


@dataclass
class ConsensusOutcome:
    action: ConsensusAction
    confirm_votes: int
    reject_votes: int
    end_time: Optional[datetime] = None


def should_close(reject_votes: int) -> bool:
    return reject_votes >= REJECT_CLOSE_THRESHOLD


def should_extend(vote_type: VoteType, confirm_votes: int) -> bool:
    return (
        vote_type == VoteType.CONFIRM
        and confirm_votes > 0
        and confirm_votes % CONFIRM_EXTEND_MULTIPLE == 0
    )


async def evaluate_vote(
    db: AsyncSession, incident_id: int, vote_type: VoteType, now: Optional[datetime] = None
) -> ConsensusOutcome:
    """
    Apply the thresholds after a vote has been committed.

    Closing is checked first and wins: once closed, the extension step finds
    the incident inactive and leaves it alone.
    """
    now = now or utcnow()
    reject_votes = await count_votes_by_type(db, incident_id, VoteType.REJECT)
    confirm_votes = await count_votes_by_type(db, incident_id, VoteType.CONFIRM)
    outcome = ConsensusOutcome(ConsensusAction.NONE, confirm_votes, reject_votes)

    if should_close(reject_votes):
        if await close_incident(db, incident_id, now=now):
            logger.info(f"Incident auto-closed: incident_id={incident_id}, reject_votes={reject_votes}")
            outcome.action = ConsensusAction.CLOSED
            outcome.end_time = now

    if outcome.action is ConsensusAction.NONE and should_extend(vote_type, confirm_votes):
        end_time = await extend_incident_end_time(db, incident_id, EXTEND_HOURS, now=now)
        if end_time is not None:
            logger.info(
                f"Incident end time extended: incident_id={incident_id}, "
                f"confirm_votes={confirm_votes}, end_time={end_time.isoformat()}"
            )
            outcome.action = ConsensusAction.EXTENDED
            outcome.end_time = end_time

    return outcome


async def vote_on_incident(
    db: AsyncSession,
    user_id: str,
    incident_id: int,
    vote_type: VoteType,
    now: Optional[datetime] = None,
) -> Tuple[Vote, ConsensusOutcome]:
    """
    Record a vote and run the consensus check on the committed counts.
    """
    now = now or utcnow()
    vote = await record_vote(db, user_id=user_id, incident_id=incident_id, vote_type=vote_type, now=now)
    outcome = await evaluate_vote(db, incident_id, vote_type, now=now)
    return vote, outcome
