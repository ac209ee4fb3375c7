"""
Geo math for walk tracking
- Great-circle distance (haversine, spherical Earth)
- Linear interpolation between two coordinates
- Coordinate parsing from the payload shapes clients send
"""

import math
from dataclasses import dataclass
from typing import Any

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 latitude/longitude pair in degrees"""

    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates in meters.
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def interpolate(a: Coordinate, b: Coordinate, ratio: float) -> Coordinate:
    """
    Point at fractional position `ratio` on the straight lat/lng line from a to b.

    Linear in degree space, not geodesic. Good enough at checkpoint spacing.
    """
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"ratio must be within [0, 1], got {ratio}")
    return Coordinate(
        latitude=a.latitude + (b.latitude - a.latitude) * ratio,
        longitude=a.longitude + (b.longitude - a.longitude) * ratio,
    )


def _checked(latitude: Any, longitude: Any) -> Coordinate:
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid coordinate values: {latitude!r}, {longitude!r}") from e

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError("Coordinate values must be finite")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"Longitude out of range: {lon}")
    return Coordinate(latitude=lat, longitude=lon)


def parse_coordinate(value: Any) -> Coordinate:
    """Parse any accepted coordinate shape into a Coordinate.

    Accepted shapes:
        - Coordinate (returned as is)
        - {"latitude": .., "longitude": ..}
        - {"lat": .., "lng": ..} or {"lat": .., "lon": ..}
        - GeoJSON {"type": "Point", "coordinates": [lng, lat]}
        - [lng, lat] pair (GeoJSON axis order)

    Raises:
        ValueError: for any other shape or out-of-range values
    """
    if isinstance(value, Coordinate):
        return value

    if isinstance(value, dict):
        if value.get("type") == "Point" and "coordinates" in value:
            return parse_coordinate(value["coordinates"])
        if "latitude" in value and "longitude" in value:
            return _checked(value["latitude"], value["longitude"])
        if "lat" in value:
            lon = value.get("lng", value.get("lon"))
            if lon is not None:
                return _checked(value["lat"], lon)
        raise ValueError(f"Unrecognized coordinate object: {sorted(value)}")

    if isinstance(value, (list, tuple)) and len(value) in (2, 3):
        # GeoJSON order, optional altitude as third element
        return _checked(value[1], value[0])

    raise ValueError(f"Unrecognized coordinate value: {value!r}")
