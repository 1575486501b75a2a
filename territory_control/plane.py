"""
MQTTControlPlane - MQTT Control Plane for the tracking service

Bounded Context: MQTT connection management + command reception
Responsibilities:
  - Subscribe to the command topic, decode JSON command objects
  - Delegate to CommandRegistry (unknown commands answered, never raised)
  - Publish retained status snapshots (session state, exported logs)
  - Answer the built-in "help" command with the registered descriptions

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (a late subscriber sees the current state)

Threading:
  - paho-mqtt network thread runs _on_connect/_on_message and therefore
    the command handlers
  - publish_status() may be called from any thread
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandRegistry, CommandNotAvailableError

logger = logging.getLogger(__name__)

HELP_COMMAND = "help"


class MQTTControlPlane:
    """
    Command intake and status output for one tracking service.

    Command payload:
        {"command": "start"}
        {"command": "export_log"}

    Status payload (retained):
        {"status": "tracking", "timestamp": "...", "client_id": "...", ...details}

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="territory/control/tracker-1/commands",
            status_topic="territory/control/tracker-1/status",
            client_id="tracker-1_control"
        )
        control_plane.command_registry.register('start', service.handle_start, "Start tracking")

        if control_plane.connect(timeout=5.0):
            print("Connected to MQTT broker")
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.command_registry = CommandRegistry()

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311
        )
        if username and password:
            self.client.username_pw_set(username, password)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._loop_running = False

        self._status_lock = threading.Lock()
        self._last_status: Optional[Dict[str, Any]] = None
        self._executed = 0
        self._rejected = 0

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect, subscribe to the command topic and wait for the CONNACK.

        Returns:
            True if connected within timeout
        """
        logger.info(f"🔌 Connecting control plane to {self.broker_host}:{self.broker_port}")
        try:
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
        except Exception as e:
            logger.error(f"❌ Broker unreachable: {e}")
            return False

        self.client.loop_start()
        self._loop_running = True

        if not self._connected.wait(timeout=timeout):
            logger.error(f"❌ No CONNACK after {timeout}s")
            return False

        logger.info("✅ Control plane connected")
        return True

    def disconnect(self) -> None:
        """Publish a final "disconnected" status and stop. Idempotent."""
        if not self._loop_running:
            return

        self.publish_status("disconnected")
        self.client.disconnect()
        self.client.loop_stop()
        self._loop_running = False
        self._connected.clear()
        logger.info("✅ Control plane disconnected")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    # ─────────────────────────────────────────────────────────────────────
    # Status
    # ─────────────────────────────────────────────────────────────────────

    def build_status(self, status: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Status message body: status, timestamp, client_id plus details."""
        message = {
            "status": status,
            "timestamp": datetime.now().isoformat(),
            "client_id": self.client_id,
        }
        if details:
            message.update(details)
        return message

    def publish_status(self, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish a retained status message (QoS 1).

        Publishing errors are logged; the message is still kept as last_status.
        """
        message = self.build_status(status, details)
        with self._status_lock:
            self._last_status = message

        try:
            self.client.publish(
                self.status_topic,
                json.dumps(message, ensure_ascii=False, default=str),
                qos=1,
                retain=True,
            )
            logger.debug(f"📤 Status published: {status}")
        except Exception as e:
            logger.error(f"❌ Error publishing status '{status}': {e}")

    @property
    def last_status(self) -> Optional[Dict[str, Any]]:
        """Most recent status message built by publish_status()."""
        with self._status_lock:
            return self._last_status

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connected": self._connected.is_set(),
            "commands_executed": self._executed,
            "commands_rejected": self._rejected,
            "available_commands": sorted(self.command_registry.available_commands),
        }

    # ─────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────

    def handle_command(self, command_data: Dict[str, Any]) -> bool:
        """
        Dispatch a decoded command payload.

        Returns:
            True if a registered handler (or the built-in help) ran
        """
        command = str(command_data.get('command', '')).strip().lower()
        if not command:
            logger.warning("⚠️ Command payload without 'command' field")
            self._rejected += 1
            return False

        if command == HELP_COMMAND and not self.command_registry.is_available(HELP_COMMAND):
            self.publish_status("help", {"commands": self.command_registry.get_help()})
            self._executed += 1
            return True

        logger.info(f"🎯 Executing command: {command}")
        try:
            self.command_registry.execute(command, command_data)
        except CommandNotAvailableError as e:
            logger.warning(f"⚠️ {e}")
            self._rejected += 1
            self.publish_status("command_rejected", {
                "command": command,
                "available_commands": sorted(self.command_registry.available_commands),
            })
            return False

        self._executed += 1
        return True

    # ===== MQTT Callbacks (network thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"❌ Connection refused (reason={reason_code})")
            self._connected.clear()
            return

        client.subscribe(self.command_topic, qos=1)
        logger.info(f"📥 Subscribed to: {self.command_topic} (QoS 1)")

        self.publish_status("connected")
        self._connected.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"⚠️ Unexpected disconnection (reason={reason_code})")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        try:
            command_data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"❌ Undecodable command payload {msg.payload!r}: {e}")
            return

        if not isinstance(command_data, dict):
            logger.warning(f"⚠️ Command payload must be a JSON object: {command_data!r}")
            return

        try:
            self.handle_command(command_data)
        except Exception as e:
            logger.error(f"❌ Command handler failed: {e}", exc_info=True)
