"""
Publisher base: one paho-mqtt client per topic.

The network loop runs in paho's background thread from connect() until
disconnect(). With QoS >= 1, publish() can block until the broker
acknowledges the message (PUBACK/PUBCOMP) or confirm_timeout expires.
Subclasses only build payloads (format_message); delivery outcome and
counters live here.
"""

import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import paho.mqtt.client as mqtt

from ..logging import StructuredLogger, LogEvent


class BasePublisher(ABC):
    """
    Connection, delivery and counters for a single topic.

    publish() may be called from any thread; counters are lock-protected.
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._stats_lock = threading.Lock()
        self._delivered = 0
        self._failed = 0
        self._last_delivery: Optional[float] = None

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # ===== paho-mqtt callbacks (network thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection (reason={reason_code})",
                metadata={'broker': self.broker, 'client_id': self.client_id}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Publisher connected",
            metadata={'broker': self.broker, 'client_id': self.client_id, 'topic': self.topic}
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher lost broker connection",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    # ===== Lifecycle =====

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Open the connection and start the network loop.

        Returns:
            True once the broker accepted the connection within timeout
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Broker unreachable",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        self.client.loop_start()
        if self._connected.wait(timeout=timeout):
            return True

        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message=f"No CONNACK within {timeout}s",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        """Stop the network loop and close the connection."""
        try:
            self.client.disconnect()
            self.client.loop_stop()
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Error during disconnect",
                exc_info=e
            )
            return

        self._connected.clear()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    # ===== Publishing =====

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Build the JSON-compatible payload."""
        raise NotImplementedError

    def publish(
        self,
        message_data: Dict[str, Any],
        retain: bool = False,
        confirm_timeout: Optional[float] = None
    ) -> bool:
        """
        Publish a pre-formatted message.

        Args:
            message_data: JSON-compatible payload
            retain: Retain flag
            confirm_timeout: With QoS >= 1, wait up to this many seconds for
                the broker acknowledgement. None returns once the message is
                queued by the client.

        Returns:
            True if queued (or acknowledged, when confirm_timeout is set)
        """
        if not self._connected.is_set():
            self._record_failure("not connected to broker")
            return False

        try:
            info = self.client.publish(
                topic=self.topic,
                payload=json.dumps(message_data, ensure_ascii=False),
                qos=self.qos,
                retain=retain
            )
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                self._record_failure(f"rc={info.rc}")
                return False

            if confirm_timeout is not None and self.qos > 0:
                info.wait_for_publish(timeout=confirm_timeout)
                if not info.is_published():
                    self._record_failure(f"no acknowledgement within {confirm_timeout}s")
                    return False

        except Exception as e:
            with self._stats_lock:
                self._failed += 1
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing message",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False

        with self._stats_lock:
            self._delivered += 1
            self._last_delivery = time.time()
            delivered = self._delivered

        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Message delivered" if confirm_timeout is not None else "Message queued",
            metadata={'topic': self.topic, 'qos': self.qos, 'delivered': delivered}
        )
        return True

    def _record_failure(self, reason: str) -> None:
        with self._stats_lock:
            self._failed += 1
        self.logger.warning(
            event=LogEvent.MQTT_PUBLISH_FAILED,
            message=f"Publish failed: {reason}",
            metadata={'topic': self.topic}
        )

    def get_stats(self) -> Dict[str, Any]:
        """Delivery counters and connection status."""
        with self._stats_lock:
            return {
                'delivered': self._delivered,
                'failed': self._failed,
                'last_delivery': self._last_delivery,
                'connected': self._connected.is_set(),
                'topic': self.topic,
                'broker': self.broker
            }
