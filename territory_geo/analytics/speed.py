"""
Speed Guard Module
==================

Anti-vehicle check between consecutive accepted samples.

Design:
- Stateless classifier (previous sample injected by the caller)
- Typed result: SpeedWarning(level, speed_kmh)
- Evaluated only after the noise filter accepted the candidate
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from territory_geo.geometry.shapes import GeoPoint


class SpeedLevel(str, Enum):
    """Speed classification for a single sampling tick."""
    NONE = "none"
    ADVISORY = "advisory"
    FATAL = "fatal"


@dataclass(frozen=True)
class SpeedWarning:
    """
    Transient speed classification attached to one tick.

    Attributes:
        level: NONE, ADVISORY or FATAL
        speed_kmh: Measured speed (None when there was nothing to compare)
    """

    level: SpeedLevel = SpeedLevel.NONE
    speed_kmh: Optional[float] = None

    @property
    def is_fatal(self) -> bool:
        return self.level == SpeedLevel.FATAL

    @property
    def is_advisory(self) -> bool:
        return self.level == SpeedLevel.ADVISORY

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict."""
        return {'level': self.level.value, 'speed_kmh': self.speed_kmh}


NO_WARNING = SpeedWarning()


@dataclass(frozen=True)
class SpeedGuard:
    """
    Classifies instantaneous speed between two samples.

    Policy:
        speed > fatal_kmh              -> FATAL (reject point, stop tracking)
        advisory_kmh < speed <= fatal  -> ADVISORY (keep point, warn)
        speed <= advisory_kmh          -> NONE

    A non-positive time delta over a non-zero distance cannot come from
    walking and is classified FATAL with an infinite speed.
    An undefined (NaN) speed is classified FATAL as well.

    Attributes:
        advisory_kmh: Advisory threshold in km/h
        fatal_kmh: Fatal threshold in km/h
    """

    advisory_kmh: float = 15.0
    fatal_kmh: float = 30.0

    def __post_init__(self):
        if self.advisory_kmh <= 0 or self.fatal_kmh <= 0:
            raise ValueError("speed thresholds must be > 0")
        if self.advisory_kmh >= self.fatal_kmh:
            raise ValueError(
                f"advisory_kmh ({self.advisory_kmh}) must be < fatal_kmh ({self.fatal_kmh})"
            )

    @staticmethod
    def speed_kmh(
        candidate: GeoPoint,
        candidate_time: float,
        last: GeoPoint,
        last_time: float
    ) -> float:
        """Speed in km/h between two timestamped points (seconds)."""
        distance = candidate.distance_to(last)
        elapsed = candidate_time - last_time
        if elapsed <= 0:
            return math.inf if distance > 0 else 0.0
        return distance / elapsed * 3.6

    def classify(
        self,
        candidate: GeoPoint,
        candidate_time: float,
        last: Optional[GeoPoint],
        last_time: Optional[float]
    ) -> SpeedWarning:
        """
        Classify the move from (last, last_time) to (candidate, candidate_time).

        The first sample of a session has no predecessor and is always NONE.
        """
        if last is None or last_time is None:
            return NO_WARNING

        speed = self.speed_kmh(candidate, candidate_time, last, last_time)

        # NaN compares false against both thresholds
        if math.isnan(speed) or speed > self.fatal_kmh:
            return SpeedWarning(level=SpeedLevel.FATAL, speed_kmh=speed)
        if speed > self.advisory_kmh:
            return SpeedWarning(level=SpeedLevel.ADVISORY, speed_kmh=speed)
        return SpeedWarning(level=SpeedLevel.NONE, speed_kmh=speed)
