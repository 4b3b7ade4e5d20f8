from typing import Any, Optional

from pydantic import BaseModel, Field


def parse_coordinate(v: Any, name: str, limit: float) -> Optional[float]:
    """
    Normalize a latitude/longitude that may arrive as a string.

    Blank values mean "not given". Anything else must parse as a number
    within [-limit, limit].
    """
    if v is None:
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    if isinstance(v, bool):
        raise ValueError(f"{name} must be a number, got {v!r}")
    try:
        value = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {v!r}")
    if not -limit <= value <= limit:
        raise ValueError(f"{name} must be between {-limit} and {limit}, got {value}")
    return value


class Coordinate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
