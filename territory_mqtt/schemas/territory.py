"""
Territory Message Schema
========================

Bounded Context: Upload payload of a validated loop.

Design:
- Path kept in the original (GPS) frame, never the display frame
- Polygon as EWKT text (SRID=4326), closed by re-appending the first point
- Bounding box and area precomputed for the backend

Message Flow:
    TrackingSession (Closed, passed) → TerritoryMessage → TerritoryPublisher → MQTT
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from territory_geo.geometry import GeoPoint
from territory_geo.session import ValidationResult
from .common import GeoBBox, Timestamp

SCHEMA_VERSION = "1.0"
SRID = 4326


def wkt_polygon(points: Sequence[GeoPoint]) -> str:
    """
    EWKT polygon for a path: "SRID=4326;POLYGON((lon lat, ...))".

    The ring is closed by re-appending the first point when the path is
    open. Fewer than 3 points cannot form a polygon and yield "".
    """
    if len(points) < 3:
        return ""

    ring = list(points)
    if ring[0] != ring[-1]:
        ring.append(ring[0])

    coords = ", ".join(f"{p.longitude} {p.latitude}" for p in ring)
    return f"SRID={SRID};POLYGON(({coords}))"


def format_area(area_m2: float) -> str:
    """Human-readable area: "1234 m²" below one square kilometer, "1.23 km²" above."""
    if area_m2 >= 1_000_000:
        return f"{area_m2 / 1_000_000:.2f} km²"
    return f"{area_m2:.0f} m²"


@dataclass(frozen=True)
class TerritoryMessage:
    """
    Claimed territory ready for persistence.

    Attributes:
        schema_version: Message schema version
        timestamp: Message creation time
        service_id: Producing service
        path: Ordered points in capture order (original frame)
        polygon_wkt: Closed EWKT polygon ("" when fewer than 3 points)
        bbox: Bounding box of the path (None when empty)
        area_m2: Enclosed spherical area
        point_count: Number of points
        started_at: Session start time
        completed_at: Closure time
        is_active: Whether the claim is live

    Invariants:
        - point_count == len(path)
        - area_m2 >= 0
    """
    schema_version: str
    timestamp: Timestamp
    service_id: str
    path: List[GeoPoint] = field(default_factory=list)
    polygon_wkt: str = ""
    bbox: Optional[GeoBBox] = None
    area_m2: float = 0.0
    point_count: int = 0
    started_at: Optional[Timestamp] = None
    completed_at: Optional[Timestamp] = None
    is_active: bool = True

    def __post_init__(self):
        """Validate invariants."""
        if self.point_count != len(self.path):
            raise ValueError(
                f"point_count ({self.point_count}) != len(path) ({len(self.path)})"
            )
        if self.area_m2 < 0:
            raise ValueError(f"area_m2 must be >= 0, got {self.area_m2}")

    @classmethod
    def from_session(
        cls,
        points: Sequence[GeoPoint],
        result: ValidationResult,
        service_id: str,
        started_at: Optional[float] = None,
        completed_at: Optional[float] = None
    ) -> 'TerritoryMessage':
        """
        Build the upload payload from a closed session.

        Args:
            points: Path snapshot (original frame)
            result: Verdict of the closure
            service_id: Producing service
            started_at: Session start (epoch seconds)
            completed_at: Closure time (epoch seconds)
        """
        path = list(points)
        return cls(
            schema_version=SCHEMA_VERSION,
            timestamp=Timestamp.now(),
            service_id=service_id,
            path=path,
            polygon_wkt=wkt_polygon(path),
            bbox=GeoBBox.from_points(path),
            area_m2=result.area_m2,
            point_count=len(path),
            started_at=Timestamp.from_epoch(started_at) if started_at is not None else None,
            completed_at=Timestamp.from_epoch(completed_at) if completed_at is not None else None,
        )

    @property
    def formatted_area(self) -> str:
        return format_area(self.area_m2)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'service_id': self.service_id,
            'path': [p.to_dict() for p in self.path],
            'polygon': self.polygon_wkt,
            'bbox': self.bbox.to_dict() if self.bbox else None,
            'area_m2': self.area_m2,
            'point_count': self.point_count,
            'started_at': self.started_at.to_dict() if self.started_at else None,
            'completed_at': self.completed_at.to_dict() if self.completed_at else None,
            'is_active': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TerritoryMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            bbox = data.get('bbox')
            started_at = data.get('started_at')
            completed_at = data.get('completed_at')
            path = [GeoPoint.from_dict(p) for p in data.get('path', [])]
            return cls(
                schema_version=str(data['schema_version']),
                timestamp=Timestamp(value=data['timestamp']),
                service_id=str(data['service_id']),
                path=path,
                polygon_wkt=str(data.get('polygon', '')),
                bbox=GeoBBox.from_dict(bbox) if bbox else None,
                area_m2=float(data['area_m2']),
                point_count=int(data.get('point_count', len(path))),
                started_at=Timestamp(value=started_at) if started_at else None,
                completed_at=Timestamp(value=completed_at) if completed_at else None,
                is_active=bool(data.get('is_active', True)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required TerritoryMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid TerritoryMessage data: {e}")
