"""
Session Narrator - turns session events into EventLog entries and typed
structured log events.

Subscribed to a TrackingSession; runs on whichever thread drives the
session (sampling thread or control thread under the service lock).
"""

from typing import Optional

from territory_geo.session import CancelReason, SessionEvent, SessionEventType
from territory_mqtt.logging import EventLog, LogEvent, StructuredLogger
from territory_mqtt.schemas import format_area

FAILURE_MESSAGES = {
    "insufficient_points": "not enough points",
    "insufficient_distance": "walked distance too short",
    "self_intersection": "path crosses itself",
    "insufficient_area": "enclosed area too small",
}


class SessionNarrator:
    """
    Session listener writing human-readable narration.

    Usage:
        narrator = SessionNarrator(event_log, logger)
        session.subscribe(narrator)
    """

    def __init__(self, event_log: EventLog, logger: Optional[StructuredLogger] = None):
        self.event_log = event_log
        self.logger = logger

    def __call__(self, event: SessionEvent) -> None:
        handler = getattr(self, f"_on_{event.event_type.value}", None)
        if handler is not None:
            handler(event)

    def _structured(self, level: str, log_event: LogEvent, message: str, metadata: dict) -> None:
        if self.logger is not None:
            getattr(self.logger, level)(event=log_event, message=message, metadata=metadata)

    def _on_started(self, event: SessionEvent) -> None:
        self.event_log.info("Tracking started")
        self._structured('info', LogEvent.SESSION_STARTED, "Tracking started", {})

    def _on_point_recorded(self, event: SessionEvent) -> None:
        count = event.data['point_count']
        distance = event.data.get('distance_from_previous_m')
        if distance is None:
            message = f"Recorded point {count} (start)"
        else:
            message = f"Recorded point {count}, {distance:.1f}m from previous"
        self.event_log.info(message)
        self._structured('debug', LogEvent.SESSION_POINT_RECORDED, message, event.data)

    def _on_closure_progress(self, event: SessionEvent) -> None:
        distance = event.data['distance_to_start_m']
        threshold = event.data['closure_distance_m']
        message = f"Distance to start: {distance:.1f}m (closes at {threshold:.0f}m)"
        self.event_log.info(message)
        self._structured('debug', LogEvent.SESSION_CLOSURE_PROGRESS, message, event.data)

    def _on_speed_warning(self, event: SessionEvent) -> None:
        speed = event.data.get('speed_kmh')
        if event.data.get('level') == 'fatal':
            message = f"Speed {speed:.1f} km/h is too fast, tracking stopped"
            self.event_log.error(message)
            self._structured('warning', LogEvent.SPEED_FATAL, message, event.data)
        else:
            message = f"Speed {speed:.1f} km/h, please slow down"
            self.event_log.warning(message)
            self._structured('warning', LogEvent.SPEED_ADVISORY, message, event.data)

    def _on_closed(self, event: SessionEvent) -> None:
        data = event.data
        if data['passed']:
            message = (
                f"Loop closed {data['distance_to_start_m']:.1f}m from start: "
                f"{format_area(data['area_m2'])} claimed with {data['point_count']} points"
            )
            self.event_log.success(message)
            self._structured('info', LogEvent.TERRITORY_VALIDATION_PASSED, message, data)
        else:
            reason = FAILURE_MESSAGES.get(data['failure_reason'], data['failure_reason'])
            message = f"Loop closed but rejected: {reason}"
            self.event_log.error(message)
            self._structured('warning', LogEvent.TERRITORY_VALIDATION_FAILED, message, data)

    def _on_cancelled(self, event: SessionEvent) -> None:
        count = event.data.get('point_count', 0)
        if event.data.get('reason') == CancelReason.SPEED_FATAL.value:
            message = f"Tracking cancelled for speeding ({count} points kept for review)"
        else:
            message = f"Tracking stopped by user ({count} points discarded)"
        self.event_log.info(message)
        self._structured('info', LogEvent.SESSION_CANCELLED, message, event.data)

    def _on_reset(self, event: SessionEvent) -> None:
        self.event_log.info("Session reset")
        self._structured('info', LogEvent.SESSION_RESET, "Session reset", {})
