from sqlalchemy import Boolean, CheckConstraint, Column, String, Integer, Enum, ForeignKey, Float

from app.db.base_class import Base
from app.models.incident import Priority


class LineSubscription(Base):
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    line_id = Column(String(64), ForeignKey("line.id", ondelete="CASCADE"), nullable=False, index=True)
    min_priority = Column(Enum(Priority, values_callable=lambda e: [m.value for m in e]), default=Priority.LOW, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class AreaSubscription(Base):
    __table_args__ = (
        CheckConstraint("radius_meters > 0", name="ck_area_subscription_radius"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius_meters = Column(Integer, nullable=False)
    min_priority = Column(Enum(Priority, values_callable=lambda e: [m.value for m in e]), default=Priority.LOW, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
