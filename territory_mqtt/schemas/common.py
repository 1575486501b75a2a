"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Serialization: to_dict() / from_dict() for JSON
- Validation: Constructor validates invariants

Types:
- GeoBBox: Geographic bounding box of a path
- Timestamp: ISO 8601 timestamp wrapper
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence

from territory_geo.geometry import GeoPoint


@dataclass(frozen=True)
class GeoBBox:
    """
    Immutable latitude/longitude bounding box.

    Attributes:
        min_lat: Southern edge (degrees)
        max_lat: Northern edge (degrees)
        min_lon: Western edge (degrees)
        max_lon: Eastern edge (degrees)

    Invariants:
        - min_lat <= max_lat
        - min_lon <= max_lon

    Example:
        >>> bbox = GeoBBox.from_points([GeoPoint(31.0, 121.0), GeoPoint(31.1, 121.2)])
        >>> bbox.to_dict()
        {'min_lat': 31.0, 'max_lat': 31.1, 'min_lon': 121.0, 'max_lon': 121.2}
    """
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def __post_init__(self):
        """Validate invariants."""
        if self.min_lat > self.max_lat:
            raise ValueError(f"min_lat ({self.min_lat}) > max_lat ({self.max_lat})")
        if self.min_lon > self.max_lon:
            raise ValueError(f"min_lon ({self.min_lon}) > max_lon ({self.max_lon})")

    @classmethod
    def from_points(cls, points: Sequence[GeoPoint]) -> Optional['GeoBBox']:
        """Bounding box of the points, None for an empty sequence."""
        if not points:
            return None
        lats = [p.latitude for p in points]
        lons = [p.longitude for p in points]
        return cls(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))

    def to_dict(self) -> Dict[str, float]:
        """Serialize to JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> 'GeoBBox':
        """Deserialize from dict.

        Raises:
            ValueError: If required keys missing or invalid values
        """
        try:
            return cls(
                min_lat=float(data['min_lat']),
                max_lat=float(data['max_lat']),
                min_lon=float(data['min_lon']),
                max_lon=float(data['max_lon'])
            )
        except KeyError as e:
            raise ValueError(f"Missing required GeoBBox field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid GeoBBox data: {e}")


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper (UTC).

    Attributes:
        value: ISO 8601 formatted timestamp string
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object."""
        return cls(value=dt.isoformat())

    @classmethod
    def from_epoch(cls, seconds: float) -> 'Timestamp':
        """Create timestamp from seconds since the Unix epoch."""
        return cls(value=datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value
