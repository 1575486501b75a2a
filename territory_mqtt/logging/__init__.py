"""
Logging for Territory MQTT
==========================

Bounded Context: Observability

Two channels:
- StructuredLogger: JSON lines for log aggregators (typed LogEvent names)
- EventLog: bounded human-readable narration shown to the walker

Example:
    >>> from territory_mqtt.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="tracker")
    >>> logger.info(
    ...     event=LogEvent.SESSION_STARTED,
    ...     message="Tracking started",
    ...     metadata={'point_count': 0}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger
from .event_log import EventLog, LogEntry, LogLevel

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    'EventLog',
    'LogEntry',
    'LogLevel',
]
