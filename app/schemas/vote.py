from pydantic import BaseModel, ConfigDict
from datetime import datetime

from app.models.vote import VoteType


class VoteCreate(BaseModel):
    vote_type: VoteType


class Vote(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    incident_id: int
    vote_type: VoteType
    created_at: datetime
