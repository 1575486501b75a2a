"""
Geometry Layer
==============

Bounded Context: Pure geographic shapes and spatial queries.

Responsibilities:
- Point and fix representation (immutable)
- Great-circle distance
- Self-intersection test
- Spherical polygon area
- NO state, NO sampling policy, NO display transforms
"""

from territory_geo.geometry.shapes import (
    EARTH_RADIUS_M,
    GeoPoint,
    Fix,
    haversine_m,
    path_length_m,
)
from territory_geo.geometry.detector import SelfIntersectionDetector, segments_intersect
from territory_geo.geometry.area import AreaCalculator

__all__ = [
    "EARTH_RADIUS_M",
    "GeoPoint",
    "Fix",
    "haversine_m",
    "path_length_m",
    "SelfIntersectionDetector",
    "segments_intersect",
    "AreaCalculator",
]
