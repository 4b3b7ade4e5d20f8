from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime

from app.models.incident import Priority
from app.schemas.geo import parse_coordinate


class LineSubscriptionCreate(BaseModel):
    line_id: str
    min_priority: Priority = Priority.LOW
    is_active: bool = True


class AreaSubscriptionCreate(BaseModel):
    latitude: float
    longitude: float
    # positivity is checked by the crud layer so it reports invalid_radius
    radius_meters: int
    min_priority: Priority = Priority.LOW
    is_active: bool = True

    @field_validator("latitude", mode="before")
    @classmethod
    def parse_latitude(cls, v: Any) -> Optional[float]:
        value = parse_coordinate(v, "latitude", 90)
        if value is None:
            raise ValueError("latitude is required")
        return value

    @field_validator("longitude", mode="before")
    @classmethod
    def parse_longitude(cls, v: Any) -> Optional[float]:
        value = parse_coordinate(v, "longitude", 180)
        if value is None:
            raise ValueError("longitude is required")
        return value


class LineSubscription(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    line_id: str
    min_priority: Priority
    is_active: bool
    created_at: datetime


class AreaSubscription(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    latitude: float
    longitude: float
    radius_meters: int
    min_priority: Priority
    is_active: bool
    created_at: datetime
