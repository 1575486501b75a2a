"""
One-shot MQTT publisher for control commands.

Each send opens a connection, publishes with QoS 1, waits for the PUBACK
and disconnects. The CLI never keeps a session open.
"""

import json
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt


class MQTTCommandClient:
    """
    Usage:
        client = MQTTCommandClient(broker="localhost", port=1883)
        client.send_command("territory/control/tracker-1/commands", {"command": "start"})
    """

    def __init__(
        self,
        broker: str = "localhost",
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = ""
    ):
        self.broker = broker
        self.port = port
        self._credentials = (username, password) if username and password else None
        self._client_id = client_id

    def _new_client(self) -> mqtt.Client:
        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self._client_id)
        if self._credentials:
            client.username_pw_set(*self._credentials)
        return client

    def send_command(
        self,
        topic: str,
        command: Dict[str, Any],
        qos: int = 1,
        timeout: float = 5.0
    ) -> None:
        """
        Raises:
            ValueError: Payload is not JSON serializable
            ConnectionError: Broker unreachable
            RuntimeError: No acknowledgement within timeout
        """
        try:
            payload = json.dumps(command)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Command is not JSON serializable: {e}")

        client = self._new_client()
        try:
            client.connect(self.broker, self.port, keepalive=30)
        except OSError as e:
            raise ConnectionError(f"No MQTT broker at {self.broker}:{self.port} ({e})")

        client.loop_start()
        try:
            info = client.publish(topic, payload, qos=qos)
            info.wait_for_publish(timeout=timeout)
            if not info.is_published():
                raise RuntimeError(f"Broker did not acknowledge '{command.get('command')}' in {timeout}s")
        finally:
            client.disconnect()
            client.loop_stop()

        print(f"📨 {command.get('command', '?')} -> {topic}")
