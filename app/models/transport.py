from sqlalchemy import Column, String, Enum, Float, Index
import enum

from app.db.base_class import Base


class VehicleType(str, enum.Enum):
    BUS = "bus"
    TRAM = "tram"


class Line(Base):
    id = Column(String(64), primary_key=True)
    number = Column(String(50), nullable=False, index=True)
    type = Column(Enum(VehicleType, values_callable=lambda e: [m.value for m in e]), nullable=False)


class Stop(Base):
    __table_args__ = (
        Index("ix_stop_lat_lon", "latitude", "longitude"),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    type = Column(Enum(VehicleType, values_callable=lambda e: [m.value for m in e]), nullable=False)
