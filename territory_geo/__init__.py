"""
Territory Geo v1.0
==================

Bounded Context: Walk-to-claim territory capture.

Design Philosophy:
- Separation of Concerns: Geometry, Analytics, Rendering, Session separated
- Geometry is pure and runs on immutable path snapshots
- Sampling policy (noise, speed) lives apart from the shapes it guards
- Display transforms never touch stored coordinates

Architecture:

    territory_geo/
    ├── geometry/          # Pure geometry (immutable, stateless)
    │   ├── shapes.py      # GeoPoint, Fix, haversine
    │   ├── detector.py    # SelfIntersectionDetector
    │   └── area.py        # AreaCalculator (spherical excess)
    │
    ├── analytics/         # Per-sample policy & accumulation
    │   ├── filters.py     # NoiseFilter
    │   ├── speed.py       # SpeedGuard, SpeedWarning
    │   └── path.py        # PathStore
    │
    ├── rendering/         # Display-only transforms
    │   └── converter.py   # CoordinateConverter (WGS-84 -> GCJ-02)
    │
    └── session.py         # TrackingSession state machine

Usage:

    from territory_geo import TrackingSession, CoordinateConverter

    session = TrackingSession(position_source)
    session.start()

    # Every 2 seconds
    outcome = session.tick()
    if outcome.result is not None and outcome.result.passed:
        print(outcome.result.area_m2)

    # Map overlay only
    display = CoordinateConverter.convert_path(session.snapshot())
"""

# Geometry Layer (immutable, stateless)
from territory_geo.geometry import (
    EARTH_RADIUS_M,
    GeoPoint,
    Fix,
    haversine_m,
    path_length_m,
    SelfIntersectionDetector,
    AreaCalculator,
)

# Analytics Layer
from territory_geo.analytics import NoiseFilter, SpeedGuard, SpeedLevel, SpeedWarning, PathStore

# Rendering Layer
from territory_geo.rendering import CoordinateConverter

# Session (orchestration)
from territory_geo.session import (
    TrackingSession,
    PositionSource,
    SessionState,
    SessionError,
    CancelReason,
    FailureReason,
    SessionEvent,
    SessionEventType,
    SessionStatus,
    CommandOutcome,
    TickOutcome,
    ValidationRules,
    ValidationResult,
    validate_path,
)

__all__ = [
    # Geometry
    "EARTH_RADIUS_M",
    "GeoPoint",
    "Fix",
    "haversine_m",
    "path_length_m",
    "SelfIntersectionDetector",
    "AreaCalculator",
    # Analytics
    "NoiseFilter",
    "SpeedGuard",
    "SpeedLevel",
    "SpeedWarning",
    "PathStore",
    # Rendering
    "CoordinateConverter",
    # Session
    "TrackingSession",
    "PositionSource",
    "SessionState",
    "SessionError",
    "CancelReason",
    "FailureReason",
    "SessionEvent",
    "SessionEventType",
    "SessionStatus",
    "CommandOutcome",
    "TickOutcome",
    "ValidationRules",
    "ValidationResult",
    "validate_path",
]

__version__ = "1.0.0"
