"""
Coordinate Converter Module
===========================

Display-only reference frame correction (WGS-84 -> GCJ-02).

Regional map tiles inside the bounding box below are drawn in an offset
frame. Points are shifted only right before rendering; capture, closure,
intersection and area always use the original WGS-84 coordinates.

Design:
- Pure, stateless, deterministic
- Identity outside the bounding box
"""

import math
from typing import List, Sequence, Tuple

from territory_geo.geometry.shapes import GeoPoint

# Krasovsky 1940 ellipsoid
SEMI_MAJOR_AXIS = 6378245.0
ECCENTRICITY_SQ = 0.00669342162296594323

REGION_LAT = (0.8293, 55.8271)
REGION_LON = (72.004, 137.8347)

# Reference point of the normalized offsets
ORIGIN_LAT = 35.0
ORIGIN_LON = 105.0


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320.0 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


class CoordinateConverter:
    """
    Stateless converter for rendering paths on offset regional maps.

    Example:
        >>> display_path = CoordinateConverter.convert_path(session.snapshot())
    """

    @staticmethod
    def is_in_region(point: GeoPoint) -> bool:
        """Check whether the point falls inside the offset region's bounding box."""
        return (
            REGION_LAT[0] <= point.latitude <= REGION_LAT[1]
            and REGION_LON[0] <= point.longitude <= REGION_LON[1]
        )

    @staticmethod
    def delta(latitude: float, longitude: float) -> Tuple[float, float]:
        """
        Offset to add to a WGS-84 coordinate.

        Returns:
            (delta_latitude, delta_longitude) in degrees
        """
        d_lat = _transform_lat(longitude - ORIGIN_LON, latitude - ORIGIN_LAT)
        d_lon = _transform_lon(longitude - ORIGIN_LON, latitude - ORIGIN_LAT)

        rad_lat = latitude / 180.0 * math.pi
        magic = 1 - ECCENTRICITY_SQ * math.sin(rad_lat) ** 2
        sqrt_magic = math.sqrt(magic)

        d_lat = (d_lat * 180.0) / ((SEMI_MAJOR_AXIS * (1 - ECCENTRICITY_SQ)) / (magic * sqrt_magic) * math.pi)
        d_lon = (d_lon * 180.0) / (SEMI_MAJOR_AXIS / sqrt_magic * math.cos(rad_lat) * math.pi)
        return d_lat, d_lon

    @staticmethod
    def convert(point: GeoPoint) -> GeoPoint:
        """
        Map a WGS-84 point to the display frame.

        Points outside the region are returned unchanged.
        """
        if not CoordinateConverter.is_in_region(point):
            return point

        d_lat, d_lon = CoordinateConverter.delta(point.latitude, point.longitude)
        return GeoPoint(
            latitude=point.latitude + d_lat,
            longitude=point.longitude + d_lon
        )

    @staticmethod
    def convert_path(points: Sequence[GeoPoint]) -> List[GeoPoint]:
        """Convert every point of a path snapshot, preserving order."""
        return [CoordinateConverter.convert(p) for p in points]
