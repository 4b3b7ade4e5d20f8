from sqlalchemy import CheckConstraint, Column, String, Integer, Enum, ForeignKey, Text, Float, DateTime, Index
import enum
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class IncidentType(str, enum.Enum):
    VEHICLE_BREAKDOWN = "vehicleBreakdown"
    INFRASTRUCTURE_BREAKDOWN = "infrastructureBreakdown"
    DANGER_INSIDE_VEHICLE = "dangerInsideVehicle"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Incident(Base):
    __table_args__ = (
        # exactly one anchor
        CheckConstraint("(line_id IS NULL) <> (stop_id IS NULL)", name="ck_incident_single_anchor"),
        Index("ix_incident_lat_lon", "latitude", "longitude"),
    )

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(IncidentType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    priority = Column(Enum(Priority, values_callable=lambda e: [m.value for m in e]), nullable=False)
    description = Column(Text, nullable=True)

    line_id = Column(String(64), ForeignKey("line.id"), nullable=True, index=True)
    line_direction = Column(String(255), nullable=True)
    stop_id = Column(String(64), ForeignKey("stop.id"), nullable=True, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    start_time = Column(DateTime, nullable=False)
    # NULL or future: active. Past: closed.
    end_time = Column(DateTime, nullable=True, index=True)

    created_by = Column(String(255), nullable=False)

    # Relationships
    line = relationship("Line", lazy="raise")
    stop = relationship("Stop", lazy="raise")
    votes = relationship("Vote", back_populates="incident", lazy="raise")

    def is_active_at(self, now) -> bool:
        return self.end_time is None or self.end_time > now

    def is_closed_at(self, now) -> bool:
        return self.end_time is not None and self.end_time < now
