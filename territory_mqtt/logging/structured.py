"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

One JSON document per line, keyed by a typed LogEvent.

Design:
- Wraps Python's logging module (thread-safe handlers)
- Bound context: fields such as service_id attached once, emitted on every line
- Disabled levels cost nothing (checked before the document is built)

Example:
    >>> logger = create_logger("tracker", service_id="tracker-1")
    >>> logger.info(
    ...     event=LogEvent.SESSION_POINT_RECORDED,
    ...     message="Recorded point 4",
    ...     metadata={'point_count': 4}
    ... )

Output:
    {"timestamp": "2026-10-18T15:30:45.123456+00:00", "level": "INFO",
     "component": "tracker", "event": "session.point.recorded",
     "message": "Recorded point 4", "context": {"service_id": "tracker-1"},
     "metadata": {"point_count": 4}}
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional
from .events import LogEvent


class StructuredLogger:
    """
    JSON structured logger.

    Attributes:
        component: Component name (e.g., "tracker", "position_source")
        context: Fields merged into every document
        logger: Underlying Python logger instance
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            component: Component identifier (e.g., "tracker")
            level: Logging level (default: INFO)
            logger_name: Custom logger name (default: territory_mqtt.<component>)
            context: Fields attached to every document
        """
        self.component = component
        self.context = dict(context or {})
        self.logger_name = logger_name or f"territory_mqtt.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Child logger on the same underlying logger with extra context."""
        child = StructuredLogger.__new__(StructuredLogger)
        child.component = self.component
        child.context = {**self.context, **context}
        child.logger_name = self.logger_name
        child.logger = self.logger
        return child

    def add_file_sink(self, path: Path) -> None:
        """Also append JSON lines to a file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
        handler.setFormatter(JSONFormatter())
        self.logger.addHandler(handler)

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[Exception] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        document = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'event': event.value,
            'message': message,
        }
        if self.context:
            document['context'] = self.context
        if metadata:
            document['metadata'] = metadata
        if exc_info is not None:
            document['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info)
            }

        self.logger.log(
            level,
            json.dumps(document, default=str, ensure_ascii=False),
            exc_info=exc_info if level >= logging.ERROR else None
        )

    def debug(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Log WARNING level message.

        Example:
            >>> logger.warning(
            ...     event=LogEvent.SPEED_ADVISORY,
            ...     message="Speed 18.2 km/h, please slow down",
            ...     metadata={'speed_kmh': 18.2}
            ... )
        """
        self._log(logging.WARNING, event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[Exception] = None
    ) -> None:
        """
        Log ERROR level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
            exc_info: Exception instance for traceback
        """
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


class JSONFormatter(logging.Formatter):
    """
    Pass-through formatter: StructuredLogger already emits JSON. A traceback,
    when present, is appended on the following lines.
    """

    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def create_logger(
    component: str,
    level: int = logging.INFO,
    **context: Any
) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Example:
        >>> logger = create_logger("tracker", level=logging.DEBUG, service_id="tracker-1")
    """
    return StructuredLogger(component=component, level=level, context=context)
