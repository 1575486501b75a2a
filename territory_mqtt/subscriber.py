"""
MQTT Position Source
====================

Bounded Context: Position feed consumption.

Subscribes to the fix topic, deserializes FixMessage payloads and drops
each fix into a single-slot mailbox. The tracking session pulls the
freshest fix from the mailbox on its own cadence; intermediate fixes are
overwritten, never queued.

Design:
- Callback-based (paho-mqtt network thread writes, sampling thread reads)
- Authorization == connected to the broker
- request_permission() == connect

Architecture:
    Device → MQTT Broker → MQTTPositionSource → mailbox.offer(fix)
                                                   ↓
                              TrackingSession.tick() → latest_fix()

Example:
    >>> mailbox = LatestFixMailbox()
    >>> source = MQTTPositionSource(
    ...     broker_host="localhost",
    ...     topic="territory/tracker-1/fixes",
    ...     mailbox=mailbox,
    ...     logger=create_logger("position")
    ... )
    >>> source.request_permission()
    >>> session = TrackingSession(source)
"""

import json
import threading
from typing import Optional, Protocol
import paho.mqtt.client as mqtt

from territory_geo.geometry import Fix
from .schemas import FixMessage
from .logging import StructuredLogger, LogEvent


class FixMailbox(Protocol):
    """Single-slot store for the freshest fix."""

    def offer(self, fix: Fix) -> None:
        ...

    def latest_fix(self) -> Optional[Fix]:
        ...


class MQTTPositionSource:
    """
    Position source backed by an MQTT fix topic.

    Implements the PositionSource protocol of territory_geo.session.

    Thread Safety:
        Thread-safe via paho-mqtt's loop_start(), threading.Event and the
        mailbox's own lock.
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        mailbox: FixMailbox,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "territory_position_source",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        """
        Args:
            broker_host: MQTT broker hostname
            topic: Fix topic to subscribe to
            mailbox: Destination of decoded fixes
            logger: Structured logger instance
            broker_port: MQTT broker port (default: 1883)
            client_id: MQTT client ID
            username: MQTT auth username (optional)
            password: MQTT auth password (optional)
            qos: Quality of Service (default 0: a lost fix is superseded by the next)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.mailbox = mailbox
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._stats_lock = threading.Lock()
        self._received = 0
        self._rejected = 0

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # ===== PositionSource protocol =====

    def latest_fix(self) -> Optional[Fix]:
        return self.mailbox.latest_fix()

    def is_authorized(self) -> bool:
        return self._connected.is_set()

    def request_permission(self) -> None:
        if not self._connected.is_set():
            self.connect()

    # ===== MQTT callbacks =====

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        """Subscribe to the fix topic once connected."""
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (reason={reason_code})",
                metadata={'broker': self.broker}
            )
            return

        self._connected.set()
        client.subscribe(self.topic, qos=self.qos)
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker and subscribed to fixes",
            metadata={'broker': self.broker, 'topic': self.topic}
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        try:
            data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode fix message",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        try:
            self.handle_fix_message(data)
        except Exception as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Fix handling failed",
                exc_info=e,
                metadata={'topic': msg.topic}
            )

    def handle_fix_message(self, data: dict) -> bool:
        """
        Validate a decoded payload and hand the fix to the mailbox.

        Returns:
            True if the fix was delivered
        """
        try:
            fix_msg = FixMessage.from_dict(data)
        except ValueError as e:
            with self._stats_lock:
                self._rejected += 1
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Fix message failed schema validation",
                exc_info=e,
                metadata={'data': data}
            )
            return False

        self.mailbox.offer(fix_msg.fix)
        with self._stats_lock:
            self._received += 1

        self.logger.debug(
            event=LogEvent.POSITION_RECEIVED,
            message="Received fix",
            metadata={'source_id': fix_msg.source_id, **fix_msg.fix.to_dict()}
        )
        return True

    # ===== Lifecycle =====

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect, start the network loop and wait for the subscription.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                return True

            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'timeout': timeout}
            )
            return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

    def disconnect(self) -> None:
        """Stop the network loop and disconnect."""
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Position source stopped",
            metadata=self.get_stats()
        )

    def get_stats(self) -> dict:
        with self._stats_lock:
            return {
                'fixes_received': self._received,
                'fixes_rejected': self._rejected,
                'connected': self._connected.is_set(),
                'topic': self.topic,
                'broker': self.broker
            }
