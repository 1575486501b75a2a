"""
Tracking Session Module
=======================

Bounded Context: Walk capture state machine and loop validation.

States:
    IDLE --start()--> TRACKING --closure--> CLOSED
                      TRACKING --cancel()/fatal speed--> CANCELLED
    CLOSED / CANCELLED --reset()--> IDLE

Tick pipeline (one atomic step, single writer):
    latest fix -> NoiseFilter -> SpeedGuard -> PathStore.append -> closure check
    closure -> full validation -> ValidationResult

Design:
- Dependency injection: position source, filter, guard, detector, rules
- No exceptions for domain outcomes; every operation returns a value
- Explicit event channel (subscribe) instead of observable fields
- Geometry always runs on immutable snapshots in the original frame
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from territory_geo.analytics import NO_WARNING, NoiseFilter, PathStore, SpeedGuard, SpeedWarning
from territory_geo.geometry import AreaCalculator, Fix, GeoPoint, SelfIntersectionDetector, path_length_m

logger = logging.getLogger(__name__)


class PositionSource(Protocol):
    """Protocol for position providers (interface)."""

    def latest_fix(self) -> Optional[Fix]:
        """Most recent fix, or None if nothing was delivered yet."""
        ...

    def is_authorized(self) -> bool:
        """Whether positions may be read."""
        ...

    def request_permission(self) -> None:
        """Ask the platform for access to positions."""
        ...


class SessionState(str, Enum):
    """Tracking session lifecycle state."""
    IDLE = "idle"
    TRACKING = "tracking"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class CancelReason(str, Enum):
    """Why a session ended without a verdict."""
    USER = "user"
    SPEED_FATAL = "speed_fatal"


class SessionError(str, Enum):
    """Rejected session commands."""
    NOT_AUTHORIZED = "not_authorized"
    INVALID_TRANSITION = "invalid_transition"


class FailureReason(str, Enum):
    """Terminal validation failures of a closure attempt."""
    INSUFFICIENT_POINTS = "insufficient_points"
    INSUFFICIENT_DISTANCE = "insufficient_distance"
    SELF_INTERSECTION = "self_intersection"
    INSUFFICIENT_AREA = "insufficient_area"


class SessionEventType(str, Enum):
    """Notifications emitted to session subscribers."""
    STARTED = "started"
    POINT_RECORDED = "point_recorded"
    SPEED_WARNING = "speed_warning"
    CLOSURE_PROGRESS = "closure_progress"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    RESET = "reset"


@dataclass(frozen=True)
class ValidationRules:
    """
    Closure and validation thresholds.

    Attributes:
        min_points: Minimum path length before closure is considered
        closure_distance_m: Max first-to-last distance for closure
        min_total_distance_m: Minimum walked distance (sum of legs)
        min_area_m2: Minimum enclosed area
    """

    min_points: int = 10
    closure_distance_m: float = 30.0
    min_total_distance_m: float = 50.0
    min_area_m2: float = 100.0

    def __post_init__(self):
        if self.min_points < 3:
            raise ValueError(f"min_points must be >= 3, got {self.min_points}")
        if self.closure_distance_m <= 0:
            raise ValueError(f"closure_distance_m must be > 0, got {self.closure_distance_m}")
        if self.min_total_distance_m < 0:
            raise ValueError(f"min_total_distance_m must be >= 0, got {self.min_total_distance_m}")
        if self.min_area_m2 < 0:
            raise ValueError(f"min_area_m2 must be >= 0, got {self.min_area_m2}")


@dataclass(frozen=True)
class ValidationResult:
    """
    Verdict of one closure attempt.

    Attributes:
        passed: True if every check succeeded
        failure_reason: First failing check, None when passed
        area_m2: Enclosed area (0.0 if validation stopped before the area step)
        point_count: Number of points in the validated path
        total_distance_m: Walked distance of the validated path
    """

    passed: bool
    failure_reason: Optional[FailureReason]
    area_m2: float
    point_count: int
    total_distance_m: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'passed': self.passed,
            'failure_reason': self.failure_reason.value if self.failure_reason else None,
            'area_m2': self.area_m2,
            'point_count': self.point_count,
            'total_distance_m': self.total_distance_m,
        }


def validate_path(
    points: Sequence[GeoPoint],
    rules: ValidationRules,
    detector: SelfIntersectionDetector
) -> ValidationResult:
    """
    Validate a closed walk. First failure wins.

    Order: point count -> walked distance -> self-intersection -> area.

    Args:
        points: Immutable path snapshot (original frame)
        rules: Thresholds
        detector: Self-intersection detector

    Returns:
        ValidationResult
    """
    count = len(points)
    if count < rules.min_points:
        return ValidationResult(False, FailureReason.INSUFFICIENT_POINTS, 0.0, count)

    distance = path_length_m(points)
    if distance < rules.min_total_distance_m:
        return ValidationResult(False, FailureReason.INSUFFICIENT_DISTANCE, 0.0, count, distance)

    if detector.has_self_intersection(points):
        return ValidationResult(False, FailureReason.SELF_INTERSECTION, 0.0, count, distance)

    area = AreaCalculator.area(points)
    if area < rules.min_area_m2:
        return ValidationResult(False, FailureReason.INSUFFICIENT_AREA, area, count, distance)

    return ValidationResult(True, None, area, count, distance)


@dataclass(frozen=True)
class SessionEvent:
    """
    Single notification from the session.

    Attributes:
        event_type: What happened
        state: Session state after the event
        timestamp: Wall-clock time of emission (seconds)
        data: Event-specific payload
    """

    event_type: SessionEventType
    state: SessionState
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandOutcome:
    """Result of start/cancel/reset."""

    accepted: bool
    state: SessionState
    error: Optional[SessionError] = None


@dataclass(frozen=True)
class TickOutcome:
    """
    Result of one sampling tick.

    Attributes:
        recorded: True if a point was appended
        warning: Speed classification of this tick
        state: Session state after the tick
        result: Verdict if this tick closed the loop
    """

    recorded: bool
    warning: SpeedWarning
    state: SessionState
    result: Optional[ValidationResult] = None


@dataclass(frozen=True)
class SessionStatus:
    """Immutable snapshot for UI and status publishing."""

    state: SessionState
    point_count: int
    speed_warning: SpeedWarning
    result: Optional[ValidationResult]
    cancel_reason: Optional[CancelReason]
    started_at: Optional[float]
    completed_at: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'state': self.state.value,
            'point_count': self.point_count,
            'speed_warning': self.speed_warning.to_dict(),
            'result': self.result.to_dict() if self.result else None,
            'cancel_reason': self.cancel_reason.value if self.cancel_reason else None,
            'started_at': self.started_at,
            'completed_at': self.completed_at,
        }


SessionListener = Callable[[SessionEvent], None]


class TrackingSession:
    """
    Owns the path and drives capture, closure and validation.

    Thread Safety:
        NOT thread-safe. One owner calls tick() and the commands; the
        service serializes access.

    Usage:
        session = TrackingSession(position_source)
        session.subscribe(on_event)
        session.start()
        # every sample_interval_s
        outcome = session.tick()
        if outcome.result is not None:
            ...
    """

    def __init__(
        self,
        position_source: PositionSource,
        noise_filter: Optional[NoiseFilter] = None,
        speed_guard: Optional[SpeedGuard] = None,
        detector: Optional[SelfIntersectionDetector] = None,
        rules: Optional[ValidationRules] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            position_source: Pull-based provider of the freshest fix
            noise_filter: Jitter gate (default 10 m)
            speed_guard: Speed classifier (default 15/30 km/h)
            detector: Self-intersection detector (default 2/2 exclusion window)
            rules: Closure and validation thresholds
            clock: Wall clock used for started_at/completed_at and events
        """
        self.position_source = position_source
        self.noise_filter = noise_filter or NoiseFilter()
        self.speed_guard = speed_guard or SpeedGuard()
        self.detector = detector or SelfIntersectionDetector()
        self.rules = rules or ValidationRules()
        self._clock = clock

        self._path = PathStore()
        self._state = SessionState.IDLE
        self._last_fix: Optional[Fix] = None
        self._warning = NO_WARNING
        self._result: Optional[ValidationResult] = None
        self._cancel_reason: Optional[CancelReason] = None
        self._started_at: Optional[float] = None
        self._completed_at: Optional[float] = None

        self._listeners: List[SessionListener] = []

    # ===== Observation =====

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register an event listener.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: SessionEventType, **data: Any) -> None:
        event = SessionEvent(
            event_type=event_type,
            state=self._state,
            timestamp=self._clock(),
            data=data
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Session listener failed on {event_type.value}: {e}", exc_info=True)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def point_count(self) -> int:
        return self._path.count()

    @property
    def speed_warning(self) -> SpeedWarning:
        return self._warning

    @property
    def result(self) -> Optional[ValidationResult]:
        return self._result

    @property
    def cancel_reason(self) -> Optional[CancelReason]:
        return self._cancel_reason

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def completed_at(self) -> Optional[float]:
        return self._completed_at

    @property
    def last_fix(self) -> Optional[Fix]:
        return self._last_fix

    def snapshot(self) -> Tuple[GeoPoint, ...]:
        """Immutable copy of the captured path (original frame)."""
        return self._path.snapshot()

    def status(self) -> SessionStatus:
        """Immutable status snapshot."""
        return SessionStatus(
            state=self._state,
            point_count=self._path.count(),
            speed_warning=self._warning,
            result=self._result,
            cancel_reason=self._cancel_reason,
            started_at=self._started_at,
            completed_at=self._completed_at,
        )

    # ===== Commands =====

    def start(self) -> CommandOutcome:
        """
        Idle -> Tracking. Clears the path.

        Returns:
            Rejected with NOT_AUTHORIZED if the source is unavailable,
            INVALID_TRANSITION if not idle.
        """
        if self._state != SessionState.IDLE:
            return CommandOutcome(False, self._state, SessionError.INVALID_TRANSITION)

        if not self.position_source.is_authorized():
            logger.warning("Position source not authorized, cannot start tracking")
            return CommandOutcome(False, self._state, SessionError.NOT_AUTHORIZED)

        self._clear()
        self._state = SessionState.TRACKING
        self._started_at = self._clock()

        logger.info("Tracking started")
        self._emit(SessionEventType.STARTED)
        return CommandOutcome(True, self._state)

    def cancel(self) -> CommandOutcome:
        """Tracking -> Cancelled (user abort). Discards the path."""
        if self._state != SessionState.TRACKING:
            return CommandOutcome(False, self._state, SessionError.INVALID_TRANSITION)

        discarded = self._path.count()
        self._path.clear()
        self._state = SessionState.CANCELLED
        self._cancel_reason = CancelReason.USER
        self._completed_at = self._clock()

        logger.info(f"Tracking cancelled by user ({discarded} points discarded)")
        self._emit(SessionEventType.CANCELLED, reason=CancelReason.USER.value, point_count=discarded)
        return CommandOutcome(True, self._state)

    def reset(self) -> CommandOutcome:
        """Closed/Cancelled -> Idle."""
        if self._state not in (SessionState.CLOSED, SessionState.CANCELLED):
            return CommandOutcome(False, self._state, SessionError.INVALID_TRANSITION)

        self._clear()
        self._state = SessionState.IDLE

        self._emit(SessionEventType.RESET)
        return CommandOutcome(True, self._state)

    def _clear(self) -> None:
        self._path.clear()
        self._last_fix = None
        self._warning = NO_WARNING
        self._result = None
        self._cancel_reason = None
        self._started_at = None
        self._completed_at = None

    # ===== Sampling =====

    def tick(self) -> TickOutcome:
        """
        Consume the freshest fix once.

        No-op unless tracking, when no fix is available, or when the noise
        filter rejects the fix. Append and closure evaluation happen in the
        same call.
        """
        if self._state != SessionState.TRACKING:
            return TickOutcome(False, self._warning, self._state)

        fix = self.position_source.latest_fix()
        if fix is None:
            return TickOutcome(False, self._warning, self._state)

        previous = self._path.last()
        if not self.noise_filter.accept(fix.point, previous):
            logger.debug(
                f"Skipped fix {previous.distance_to(fix.point):.1f}m from last point"
            )
            return TickOutcome(False, self._warning, self._state)

        last_time = self._last_fix.timestamp if self._last_fix is not None else None
        warning = self.speed_guard.classify(fix.point, fix.timestamp, previous, last_time)
        self._warning = warning

        if warning.is_fatal:
            self._state = SessionState.CANCELLED
            self._cancel_reason = CancelReason.SPEED_FATAL
            self._completed_at = self._clock()

            logger.warning(f"Fatal speed {warning.speed_kmh:.1f} km/h, tracking stopped")
            self._emit(SessionEventType.SPEED_WARNING, **warning.to_dict())
            self._emit(
                SessionEventType.CANCELLED,
                reason=CancelReason.SPEED_FATAL.value,
                point_count=self._path.count()
            )
            return TickOutcome(False, warning, self._state)

        if warning.is_advisory:
            self._emit(SessionEventType.SPEED_WARNING, **warning.to_dict())

        self._path.append(fix.point)
        self._last_fix = fix

        count = self._path.count()
        self._emit(
            SessionEventType.POINT_RECORDED,
            point_count=count,
            point=fix.point.to_dict(),
            distance_from_previous_m=previous.distance_to(fix.point) if previous else None
        )

        result = self._check_closure()
        return TickOutcome(True, warning, self._state, result)

    def _check_closure(self) -> Optional[ValidationResult]:
        count = self._path.count()
        if count < self.rules.min_points:
            return None

        distance = self._path.first().distance_to(self._path.last())
        self._emit(
            SessionEventType.CLOSURE_PROGRESS,
            distance_to_start_m=distance,
            closure_distance_m=self.rules.closure_distance_m
        )
        if distance > self.rules.closure_distance_m:
            return None

        self._state = SessionState.CLOSED
        self._completed_at = self._clock()
        self._result = validate_path(self._path.snapshot(), self.rules, self.detector)

        logger.info(
            f"Loop closed {distance:.1f}m from start, "
            f"passed={self._result.passed} reason={self._result.failure_reason}"
        )
        self._emit(
            SessionEventType.CLOSED,
            distance_to_start_m=distance,
            **self._result.to_dict()
        )
        return self._result

    def __repr__(self) -> str:
        return f"TrackingSession(state={self._state.value}, points={self._path.count()})"
