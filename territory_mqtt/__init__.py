"""
Territory MQTT Communication Package
====================================

Bounded Context: Communication protocol for territory tracking

MQTT messaging between the position feed (device), the tracking service
and the backend that persists claimed territories.

Architecture:
- schemas/: Immutable wire data structures (FixMessage, TerritoryMessage)
- publishers/: Message producers (TerritoryPublisher)
- subscriber: MQTTPositionSource (fix topic → single-slot mailbox)
- logging/: Structured JSON logging and the bounded EventLog

Design Philosophy:
- Immutability: frozen dataclasses for message DTOs
- Observability: structured logs (JSON) for production queries
- Narration: human-readable EventLog for the walker

Public API
----------
Schemas:
    GeoBBox, Timestamp, FixMessage, TerritoryMessage

Publishers:
    TerritoryPublisher, BasePublisher

Subscriber:
    MQTTPositionSource

Logging:
    LogEvent, StructuredLogger, create_logger, EventLog, LogEntry, LogLevel

Example:
    >>> from territory_mqtt import TerritoryPublisher, TerritoryMessage, create_logger
    >>> logger = create_logger("tracker")
    >>> publisher = TerritoryPublisher(
    ...     broker_host="localhost",
    ...     topic="territory/tracker-1/territories",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_territory(
    ...     TerritoryMessage.from_session(points, result, service_id="tracker-1")
    ... )
"""

from .schemas import (
    GeoBBox,
    Timestamp,
    FixMessage,
    TerritoryMessage,
    wkt_polygon,
    format_area,
)
from .publishers import BasePublisher, TerritoryPublisher
from .subscriber import MQTTPositionSource
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
    EventLog,
    LogEntry,
    LogLevel,
)

__version__ = "1.0.0"

__all__ = [
    # Schemas
    'GeoBBox',
    'Timestamp',
    'FixMessage',
    'TerritoryMessage',
    'wkt_polygon',
    'format_area',
    # Publishers
    'BasePublisher',
    'TerritoryPublisher',
    # Subscriber
    'MQTTPositionSource',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    'EventLog',
    'LogEntry',
    'LogLevel',
]
