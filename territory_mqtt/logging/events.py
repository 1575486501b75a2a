"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for structured logging.

Design:
- Enum-based (prevents typos)
- Hierarchical naming (namespace.category.action)

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, session, speed, territory, error
    category: connected, point, closed
    action: recorded, passed, failed

Example Log Query:
    fields @timestamp, event, metadata.area_m2
    | filter event = "territory.validation.passed"
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - session.*: Tracking session lifecycle
    - speed.*: Speed guard classifications
    - territory.*: Closure verdicts and uploads
    - control.*: Control plane commands
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Session Events ==========
    SESSION_STARTED = "session.started"
    """Tracking session entered TRACKING."""

    SESSION_POINT_RECORDED = "session.point.recorded"
    """Accepted fix appended to the path."""

    SESSION_CLOSURE_PROGRESS = "session.closure.progress"
    """Distance to the starting point re-evaluated."""

    SESSION_CANCELLED = "session.cancelled"
    """Session cancelled by the user or by the speed guard."""

    SESSION_RESET = "session.reset"
    """Session returned to IDLE."""

    SESSION_NOT_AUTHORIZED = "session.not_authorized"
    """Start rejected because positions are unavailable."""

    # ========== Speed Events ==========
    SPEED_ADVISORY = "speed.advisory"
    """Walking speed above the advisory threshold."""

    SPEED_FATAL = "speed.fatal"
    """Speed above the fatal threshold, tracking stopped."""

    # ========== Territory Events ==========
    TERRITORY_VALIDATION_PASSED = "territory.validation.passed"
    """Closed loop passed all checks."""

    TERRITORY_VALIDATION_FAILED = "territory.validation.failed"
    """Closed loop failed a check."""

    TERRITORY_PUBLISHED = "territory.published"
    """Territory payload handed to the broker."""

    POSITION_RECEIVED = "position.received"
    """Fix received from the position feed."""

    # ========== Control Events ==========
    CONTROL_COMMAND_RECEIVED = "control.command.received"
    """Control command received."""

    CONTROL_COMMAND_REJECTED = "control.command.rejected"
    """Control command unknown or unavailable."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

SESSION_EVENTS = {
    LogEvent.SESSION_STARTED,
    LogEvent.SESSION_POINT_RECORDED,
    LogEvent.SESSION_CLOSURE_PROGRESS,
    LogEvent.SESSION_CANCELLED,
    LogEvent.SESSION_RESET,
    LogEvent.SESSION_NOT_AUTHORIZED,
}

ERROR_EVENTS = {
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.SCHEMA_VALIDATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
}
