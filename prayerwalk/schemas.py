"""
Pydantic schemas for the walk API and the location socket.
Coordinates are normalized here and nowhere else.
"""

import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .services.geo import Coordinate, parse_coordinate
from .services.gps_validator import GPSSample

# Values above this are epoch milliseconds (1e11 s is the year 5138)
MILLISECONDS_CUTOFF = 1e11


def normalize_timestamp(value: Optional[float], received_at: Optional[float] = None) -> float:
    """Epoch seconds from a client timestamp in seconds or milliseconds"""
    if value is None:
        return received_at if received_at is not None else time.time()
    value = float(value)
    if value > MILLISECONDS_CUTOFF:
        return value / 1000.0
    return value


class CoordinatePayload(BaseModel):
    """Any body carrying a position.

    Accepts top-level latitude/longitude (or lat/lng) or a `location` field
    holding a GeoJSON point, a [lng, lat] pair or a lat/lng object.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    @model_validator(mode="before")
    @classmethod
    def _normalize_coordinate(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        source = data["location"] if data.get("location") is not None else data
        coordinate = parse_coordinate(source)
        return {**data, "latitude": coordinate.latitude, "longitude": coordinate.longitude}

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class StartWalkRequest(CoordinatePayload):
    location_id: Optional[str] = Field(None, alias="locationId")


class SessionPositionRequest(CoordinatePayload):
    """Body for arrive and complete"""

    session_id: str = Field(..., alias="sessionId", min_length=1)


class LocationUpdate(CoordinatePayload):
    """Payload of a LOCATION_UPDATE socket message"""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    speed: Optional[float] = None
    accuracy: Optional[float] = Field(None, ge=0)
    altitude: Optional[float] = None
    is_mock: Optional[bool] = Field(False, alias="isMock")
    timestamp: Optional[float] = None

    def to_sample(self, received_at: Optional[float] = None) -> GPSSample:
        return GPSSample(
            coordinate=self.coordinate,
            timestamp=normalize_timestamp(self.timestamp, received_at),
            speed=self.speed,
            accuracy=self.accuracy,
            altitude=self.altitude,
            is_mock=bool(self.is_mock),
        )


class SocketMessage(BaseModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
