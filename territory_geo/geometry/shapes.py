"""
Geographic Shapes Module
========================

Pure geographic value objects - NO state, NO side effects.

Design:
- Immutable points (frozen dataclass pattern)
- Haversine great-circle distance on a spherical Earth
- Validation at construction (fail-fast)
- Immutable, safe to share across threads
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in meters between two lat/lon pairs (degrees).

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


@dataclass(frozen=True)
class GeoPoint:
    """
    Immutable geographic coordinate in degrees.

    Attributes:
        latitude: Latitude in degrees, [-90, 90]
        longitude: Longitude in degrees, [-180, 180]

    Example:
        >>> p = GeoPoint(latitude=31.2304, longitude=121.4737)
        >>> p.to_dict()
        {'lat': 31.2304, 'lon': 121.4737}
    """

    latitude: float
    longitude: float

    def __post_init__(self):
        """Validate coordinate ranges."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude must be in [-90, 90], got {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude must be in [-180, 180], got {self.longitude}")

    def distance_to(self, other: "GeoPoint") -> float:
        """Great-circle distance to another point in meters."""
        return haversine_m(self.latitude, self.longitude, other.latitude, other.longitude)

    def offset(self, east_m: float, north_m: float) -> "GeoPoint":
        """
        Point displaced by a local metric offset (equirectangular approximation,
        accurate to centimeters over a few hundred meters).
        """
        d_lat = math.degrees(north_m / EARTH_RADIUS_M)
        d_lon = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(self.latitude))))
        return GeoPoint(latitude=self.latitude + d_lat, longitude=self.longitude + d_lon)

    def to_dict(self) -> dict:
        """Serialize as {"lat": ..., "lon": ...}."""
        return {'lat': self.latitude, 'lon': self.longitude}

    @classmethod
    def from_dict(cls, data: dict) -> "GeoPoint":
        """
        Deserialize from {"lat": ..., "lon": ...}.

        Raises:
            ValueError: If keys are missing or values are out of range
        """
        if not isinstance(data, dict):
            raise ValueError(f"GeoPoint must be an object, got {type(data).__name__}")
        try:
            return cls(latitude=float(data['lat']), longitude=float(data['lon']))
        except KeyError as e:
            raise ValueError(f"Missing required GeoPoint field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid GeoPoint data: {e}")


@dataclass(frozen=True)
class Fix:
    """
    One position sample reported by the position source.

    Attributes:
        point: Reported coordinate
        timestamp: Acquisition time, seconds since the Unix epoch
        accuracy_m: Horizontal accuracy hint in meters (opaque to validation)
    """

    point: GeoPoint
    timestamp: float
    accuracy_m: Optional[float] = None

    def __post_init__(self):
        if not math.isfinite(self.timestamp):
            raise ValueError(f"timestamp must be finite, got {self.timestamp}")
        if self.accuracy_m is not None and not math.isfinite(self.accuracy_m):
            raise ValueError(f"accuracy_m must be finite, got {self.accuracy_m}")

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict."""
        result = {
            'lat': self.point.latitude,
            'lon': self.point.longitude,
            'timestamp': self.timestamp,
        }
        if self.accuracy_m is not None:
            result['accuracy_m'] = self.accuracy_m
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Fix":
        """
        Deserialize from dict with lat, lon, timestamp and optional accuracy_m.

        Raises:
            ValueError: If required fields missing or invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"Fix must be an object, got {type(data).__name__}")
        try:
            accuracy = data.get('accuracy_m')
            return cls(
                point=GeoPoint.from_dict(data),
                timestamp=float(data['timestamp']),
                accuracy_m=float(accuracy) if accuracy is not None else None
            )
        except KeyError as e:
            raise ValueError(f"Missing required Fix field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid Fix data: {e}")


def path_length_m(points: Sequence[GeoPoint]) -> float:
    """
    Total walked distance: sum of consecutive great-circle distances.

    The path is treated as open (no last-to-first leg).
    """
    return sum(
        a.distance_to(b)
        for a, b in zip(points, points[1:])
    )
