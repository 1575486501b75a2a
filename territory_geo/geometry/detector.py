"""
Self-Intersection Detector Module
=================================

Stateless crossing detection over a captured path.

Design:
- Pure functions (no state)
- Operates on an immutable snapshot, never the live path
- Planar approximation: longitude is X, latitude is Y (degrees used directly)
- Counter-clockwise orientation test, vectorized per segment with numpy

The planar test is only meaningful at walking scale (tens to hundreds of
meters). It is not a geodesic test and must not be used for large polygons.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from territory_geo.geometry.shapes import GeoPoint


def _ccw(p: np.ndarray, q: np.ndarray, r: np.ndarray) -> np.ndarray:
    """
    Orientation of the triple (p, q, r).

    Arrays broadcast on the leading axis; the last axis is (x, y).

    Returns:
        Boolean array, True where the 2D cross product is strictly positive
    """
    return (
        (r[..., 1] - p[..., 1]) * (q[..., 0] - p[..., 0])
        - (q[..., 1] - p[..., 1]) * (r[..., 0] - p[..., 0])
    ) > 0


def segments_intersect(
    a: Tuple[float, float],
    b: Tuple[float, float],
    c: Tuple[float, float],
    d: Tuple[float, float]
) -> bool:
    """
    Check whether segment AB crosses segment CD.

    AB and CD intersect iff ccw(A,C,D) != ccw(B,C,D) and ccw(A,B,C) != ccw(A,B,D).

    Args:
        a, b: Endpoints (x, y) of the first segment
        c, d: Endpoints (x, y) of the second segment
    """
    a, b, c, d = (np.asarray(v, dtype=float) for v in (a, b, c, d))
    return bool(
        (_ccw(a, c, d) != _ccw(b, c, d)) and (_ccw(a, b, c) != _ccw(a, b, d))
    )


def to_xy(path: Sequence[GeoPoint]) -> np.ndarray:
    """Project a path to an Nx2 array of (longitude, latitude)."""
    return np.array([[p.longitude, p.latitude] for p in path], dtype=float).reshape(-1, 2)


@dataclass(frozen=True)
class SelfIntersectionDetector:
    """
    Detects whether an open path crosses itself.

    Segment i joins point i to point i+1. Every pair (i, j) with j >= i + 2
    is tested, except pairs where i is one of the first `skip_head` segments
    AND j is one of the last `skip_tail` segments. That window hides the
    expected contact between the walk's start and its closing approach.

    Attributes:
        skip_head: Number of leading segments excluded against the tail
        skip_tail: Number of trailing segments excluded against the head

    Example:
        >>> detector = SelfIntersectionDetector()
        >>> detector.has_self_intersection(path_snapshot)
        False
    """

    skip_head: int = 2
    skip_tail: int = 2

    def __post_init__(self):
        """Validate exclusion window."""
        if self.skip_head < 0 or self.skip_tail < 0:
            raise ValueError(
                f"skip_head/skip_tail must be >= 0, got {self.skip_head}/{self.skip_tail}"
            )

    def find_intersection(self, path: Sequence[GeoPoint]) -> Optional[Tuple[int, int]]:
        """
        Find the first crossing segment pair.

        Args:
            path: Immutable snapshot of the path

        Returns:
            (i, j) segment indices of the first crossing found, or None
        """
        if len(path) < 4:
            return None

        xy = to_xy(path)
        segment_count = len(xy) - 1
        tail_start = segment_count - self.skip_tail

        for i in range(segment_count):
            j = np.arange(i + 2, segment_count)
            if i < self.skip_head:
                j = j[j < tail_start]
            if j.size == 0:
                continue

            a, b = xy[i], xy[i + 1]
            c, d = xy[j], xy[j + 1]

            hits = (_ccw(a, c, d) != _ccw(b, c, d)) & (_ccw(a, b, c) != _ccw(a, b, d))
            if hits.any():
                return i, int(j[np.argmax(hits)])

        return None

    def has_self_intersection(self, path: Sequence[GeoPoint]) -> bool:
        """
        Check whether the path crosses itself.

        Fewer than 4 points can never self-intersect.
        """
        return self.find_intersection(path) is not None
