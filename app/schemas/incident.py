from typing import Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime

from app.core.errors import InputNotValidError
from app.models.incident import IncidentType, Priority
from app.schemas.geo import Coordinate, parse_coordinate


# Properties to receive on incident creation
class IncidentCreate(BaseModel):
    type: IncidentType
    priority: Priority
    description: Optional[str] = None
    line_id: Optional[str] = None
    line_direction: Optional[str] = None
    stop_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("line_id", "line_direction", "stop_id", "description", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("latitude", mode="before")
    @classmethod
    def parse_latitude(cls, v: Any) -> Optional[float]:
        return parse_coordinate(v, "latitude", 90)

    @field_validator("longitude", mode="before")
    @classmethod
    def parse_longitude(cls, v: Any) -> Optional[float]:
        return parse_coordinate(v, "longitude", 180)


class LineAnchor(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_id: str
    direction: str
    location: Coordinate


class StopAnchor(BaseModel):
    model_config = ConfigDict(frozen=True)

    stop_id: str
    location: Optional[Coordinate] = None


Anchor = Union[LineAnchor, StopAnchor]


def resolve_anchor(payload: IncidentCreate) -> Anchor:
    """
    Turn the optional anchor fields of a creation payload into exactly one
    anchor, or raise InputNotValidError naming the rule that failed.
    """
    has_line = bool(payload.line_id)
    has_stop = bool(payload.stop_id)
    has_location = payload.latitude is not None and payload.longitude is not None

    if has_line and has_stop:
        raise InputNotValidError(
            "Incident must have either line_id or stop_id, not both",
            reason="both_anchors",
            value={"line_id": payload.line_id, "stop_id": payload.stop_id},
        )
    if not has_line and not has_stop:
        raise InputNotValidError(
            "Incident must have either line_id or stop_id",
            reason="missing_anchor",
            value={"line_id": payload.line_id, "stop_id": payload.stop_id},
        )

    location = Coordinate(lat=payload.latitude, lon=payload.longitude) if has_location else None

    if has_stop:
        return StopAnchor(stop_id=payload.stop_id, location=location)

    if location is None:
        raise InputNotValidError(
            "Incident must have location if line_id is provided",
            reason="missing_location",
            value={
                "line_id": payload.line_id,
                "latitude": payload.latitude,
                "longitude": payload.longitude,
            },
        )
    if not payload.line_direction:
        raise InputNotValidError(
            "Incident must have direction if line_id is provided",
            reason="missing_direction",
            value={"line_id": payload.line_id, "line_direction": payload.line_direction},
        )
    return LineAnchor(line_id=payload.line_id, direction=payload.line_direction, location=location)


class IncidentFilters(BaseModel):
    line_id: Optional[str] = None
    line_direction: Optional[str] = None
    stop_id: Optional[str] = None
    is_active: Optional[bool] = None
    priority: Optional[Priority] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_meters: Optional[float] = None


# Properties to return to client
class Incident(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: IncidentType
    priority: Priority
    description: Optional[str] = None
    line_id: Optional[str] = None
    line_direction: Optional[str] = None
    stop_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    created_by: str
    created_at: datetime


class IncidentWithVotes(Incident):
    confirm_votes: int = 0
    reject_votes: int = 0


class PaginatedIncidents(BaseModel):
    data: List[IncidentWithVotes]
    total: int


class RouteQuery(BaseModel):
    """
    Either an encoded polyline or explicit points describing a trip.
    """
    polyline: Optional[str] = None
    points: Optional[List[Coordinate]] = None
    radius_meters: Optional[float] = Field(None, gt=0)
    interpolation_meters: Optional[float] = Field(None, ge=1)
    is_active: Optional[bool] = True
    priority: Optional[Priority] = None
    limit: Optional[int] = Field(None, ge=1, le=500)

    @model_validator(mode="after")
    def check_route_given(self) -> "RouteQuery":
        if self.polyline is not None and self.points is not None:
            raise ValueError("Provide either polyline or points, not both")
        if self.polyline is None and self.points is None:
            raise ValueError("Provide either polyline or points")
        return self


class IncidentOnRoute(IncidentWithVotes):
    distance_meters: float
    nearest_point: Coordinate
