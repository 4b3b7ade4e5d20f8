from pydantic import BaseModel, ConfigDict

from app.models.transport import VehicleType


class Stop(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    latitude: float
    longitude: float
    type: VehicleType


class Line(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    number: str
    type: VehicleType
