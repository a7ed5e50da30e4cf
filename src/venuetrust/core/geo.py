from __future__ import annotations

import math
from math import asin, cos, radians, sin, sqrt

from venuetrust.errors import InvalidCoordinate

"""
Geospatial helpers.

A spherical-Earth haversine is accurate to well under 0.5% at venue scale, which is
far below GPS noise, so we avoid pulling in a GIS dependency.
"""

EARTH_RADIUS_M = 6_371_000.0


def validate_coordinate(lat: float, lon: float) -> None:
    """Raise `InvalidCoordinate` unless (lat, lon) is a finite, in-range position."""
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinate(f"Coordinates must be numeric, got ({lat!r}, {lon!r})") from exc
    if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
        raise InvalidCoordinate(f"Coordinates must be finite, got ({lat_f}, {lon_f})")
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinate(f"Latitude {lat_f} outside [-90, 90]")
    if not -180.0 <= lon_f <= 180.0:
        raise InvalidCoordinate(f"Longitude {lon_f} outside [-180, 180]")


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two positions.

    Raises:
        InvalidCoordinate: If either position is out of range.
    """
    validate_coordinate(lat1, lon1)
    validate_coordinate(lat2, lon2)

    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = phi2 - phi1
    dlmb = radians(lon2 - lon1)

    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlmb / 2) ** 2
    # Rounding can push h a hair past 1.0 for antipodal points.
    return 2 * EARTH_RADIUS_M * asin(sqrt(min(1.0, h)))
