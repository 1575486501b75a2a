"""
Analytics Layer
===============

Bounded Context: Per-sample policies and path accumulation.

Responsibilities:
- Jitter rejection (NoiseFilter)
- Speed classification (SpeedGuard)
- Path accumulation with immutable snapshots (PathStore)
"""

from territory_geo.analytics.filters import NoiseFilter
from territory_geo.analytics.speed import SpeedGuard, SpeedLevel, SpeedWarning, NO_WARNING
from territory_geo.analytics.path import PathStore

__all__ = [
    "NoiseFilter",
    "SpeedGuard",
    "SpeedLevel",
    "SpeedWarning",
    "NO_WARNING",
    "PathStore",
]
