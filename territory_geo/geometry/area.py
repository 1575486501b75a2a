"""
Area Calculator Module
======================

Spherical-excess shoelace area of a closed ring of geographic points.

For each consecutive pair (wrapping last -> first) accumulate
(lon2 - lon1) * (2 + sin(lat1) + sin(lat2)) in radians, multiply by R^2 / 2
and take the absolute value.

Valid for loops small relative to the Earth's radius. The result has no
meaning for self-intersecting rings; run SelfIntersectionDetector first.
"""

from typing import Sequence

import numpy as np

from territory_geo.geometry.shapes import EARTH_RADIUS_M, GeoPoint


class AreaCalculator:
    """Stateless area computation (static methods only)."""

    @staticmethod
    def area(path: Sequence[GeoPoint], radius_m: float = EARTH_RADIUS_M) -> float:
        """
        Enclosed area in square meters, always non-negative.

        Args:
            path: Ordered ring vertices; the closing edge is implicit
            radius_m: Sphere radius

        Returns:
            Area in m², 0.0 for fewer than 3 points
        """
        if len(path) < 3:
            return 0.0

        lat = np.radians([p.latitude for p in path])
        lon = np.radians([p.longitude for p in path])
        lat_next = np.roll(lat, -1)
        lon_next = np.roll(lon, -1)

        total = np.sum((lon_next - lon) * (2.0 + np.sin(lat) + np.sin(lat_next)))
        return float(abs(total * radius_m * radius_m / 2.0))
