"""
Noise Filter Module
===================

Rejects samples that sit within GPS jitter of the last accepted sample.

Design:
- Pure function of (candidate, last, threshold)
- First point is always accepted
"""

from dataclasses import dataclass
from typing import Optional

from territory_geo.geometry.shapes import GeoPoint


@dataclass(frozen=True)
class NoiseFilter:
    """
    Minimum-distance gate between consecutive accepted points.

    Attributes:
        min_distance_m: Candidates closer than this to the last point are dropped
    """

    min_distance_m: float = 10.0

    def __post_init__(self):
        if self.min_distance_m < 0:
            raise ValueError(f"min_distance_m must be >= 0, got {self.min_distance_m}")

    def accept(self, candidate: GeoPoint, last: Optional[GeoPoint]) -> bool:
        """
        Decide whether a candidate point moves far enough to be recorded.

        Args:
            candidate: Newly sampled point
            last: Last accepted point, or None at the start of a path

        Returns:
            True if the candidate should be kept
        """
        if last is None:
            return True
        return candidate.distance_to(last) >= self.min_distance_m
