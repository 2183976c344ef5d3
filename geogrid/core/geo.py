"""Great-circle helpers used to place and score grid points."""

from __future__ import annotations

import math
import re
from typing import Optional

from geogrid.core.models import GeoPoint, GridValidationError

# Earth radius in km
EARTH_RADIUS_KM = 6371.0

_COORDINATE_CONTEXT = re.compile(r"^\s*@?(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


def haversine_distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Calculate the great-circle distance between two points in kilometers."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlng = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    # min() guards against h creeping past 1.0 for antipodal points
    c = 2 * math.asin(math.sqrt(min(1.0, h)))
    return EARTH_RADIUS_KM * c


def initial_bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Initial compass bearing from a to b, in degrees within [0, 360)."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlng = math.radians(b.longitude - a.longitude)

    x = math.sin(dlng) * math.cos(lat2)
    y = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)
    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def normalize_longitude(longitude: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    if -180.0 <= longitude <= 180.0:
        return longitude
    return ((longitude + 180.0) % 360.0) - 180.0


def destination_point(origin: GeoPoint, bearing_rad: float, distance_km: float) -> GeoPoint:
    """Project a point distance_km away from origin along bearing_rad (radians, clockwise from north)."""
    if distance_km == 0:
        return origin

    lat = math.radians(origin.latitude)
    lng = math.radians(origin.longitude)
    angular = distance_km / EARTH_RADIUS_KM

    new_lat = math.asin(
        math.sin(lat) * math.cos(angular) + math.cos(lat) * math.sin(angular) * math.cos(bearing_rad)
    )
    new_lng = lng + math.atan2(
        math.sin(bearing_rad) * math.sin(angular) * math.cos(lat),
        math.cos(angular) - math.sin(lat) * math.sin(new_lat),
    )

    latitude = max(-90.0, min(90.0, math.degrees(new_lat)))
    return GeoPoint(latitude=latitude, longitude=normalize_longitude(math.degrees(new_lng)))


def distance_to_nearest_pole_km(point: GeoPoint) -> float:
    return math.radians(90.0 - abs(point.latitude)) * EARTH_RADIUS_KM


def parse_coordinate_context(text: Optional[str]) -> Optional[GeoPoint]:
    """Return the GeoPoint encoded in a "lat,lng" location context, if any."""
    if not text:
        return None
    match = _COORDINATE_CONTEXT.match(text)
    if not match:
        return None
    try:
        return GeoPoint(latitude=float(match.group(1)), longitude=float(match.group(2)))
    except GridValidationError:
        return None


def format_coordinate_context(point: GeoPoint) -> str:
    return f"{point.latitude:.6f},{point.longitude:.6f}"
