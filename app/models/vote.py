from sqlalchemy import Column, String, Integer, Enum, ForeignKey, UniqueConstraint
import enum
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class VoteType(str, enum.Enum):
    CONFIRM = "confirm"
    REJECT = "reject"


class Vote(Base):
    __table_args__ = (
        UniqueConstraint("user_id", "incident_id", name="uq_vote_user_incident"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False)
    incident_id = Column(Integer, ForeignKey("incident.id", ondelete="CASCADE"), nullable=False, index=True)
    vote_type = Column(Enum(VoteType, values_callable=lambda e: [m.value for m in e]), nullable=False)

    incident = relationship("Incident", back_populates="votes", lazy="raise")
