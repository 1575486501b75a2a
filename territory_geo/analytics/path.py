"""
Path Store Module
=================

Append-only ordered store of accepted points.

Design:
- Mutable state (private list)
- Immutable snapshots (tuple copy-on-read) for geometry and UI readers
- Single writer (the session tick); caller must synchronize if multi-threaded
"""

from typing import List, Optional, Tuple

from territory_geo.geometry.shapes import GeoPoint


class PathStore:
    """
    Chronological sequence of accepted points.

    Insertion order is capture order; no reordering or deduplication happens
    here (jitter is removed by NoiseFilter before append).

    Usage:
        store = PathStore()
        store.append(point)
        snapshot = store.snapshot()  # Immutable tuple
    """

    def __init__(self):
        self._points: List[GeoPoint] = []

    def append(self, point: GeoPoint) -> None:
        """Add a point at the end of the path."""
        self._points.append(point)

    def snapshot(self) -> Tuple[GeoPoint, ...]:
        """
        Get an immutable copy of the path.

        Returns:
            Tuple of points in capture order
        """
        return tuple(self._points)

    def clear(self) -> None:
        """Drop all points."""
        self._points.clear()

    def count(self) -> int:
        """Number of stored points."""
        return len(self._points)

    def first(self) -> Optional[GeoPoint]:
        """First point, or None when empty."""
        return self._points[0] if self._points else None

    def last(self) -> Optional[GeoPoint]:
        """Most recent point, or None when empty."""
        return self._points[-1] if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return f"PathStore(points={len(self._points)})"
