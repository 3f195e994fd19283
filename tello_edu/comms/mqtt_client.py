"""MQTT bridge for remote control and telemetry.

Receives operator commands on ``{prefix}/commands/{drone_id}`` and feeds
them into a command Channel for a CommandRelay. Publishes telemetry
snapshots on ``{prefix}/telemetry/{drone_id}``.

Command payloads are JSON, e.g. ``{"command": "rc", "yaw": 40}`` or
``{"command": "land"}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

import paho.mqtt.client as mqtt

from tello_edu.comms.channel import Channel
from tello_edu.data.models import TelemetrySnapshot, command_from_dict

logger = logging.getLogger(__name__)


class MQTTCommandBridge:
    """paho-mqtt client bridging a broker and the drone's channels.

    paho runs its network loop in its own thread, so received commands
    are handed to the asyncio loop with Channel.send_threadsafe().
    """

    def __init__(
        self,
        commands: Channel,
        loop: asyncio.AbstractEventLoop,
        broker: str = "localhost",
        port: int = 1883,
        drone_id: str = "tello",
        topic_prefix: str = "tello",
        use_tls: bool = False,
        qos: int = 1,
    ):
        self._commands = commands
        self._loop = loop
        self._broker = broker
        self._port = port
        self._drone_id = drone_id
        self._prefix = topic_prefix
        self._qos = qos
        self._connected = False

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=f"tello-{drone_id}"
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

        if use_tls:
            self._client.tls_set()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def command_topic(self) -> str:
        return f"{self._prefix}/commands/{self._drone_id}"

    @property
    def telemetry_topic(self) -> str:
        return f"{self._prefix}/telemetry/{self._drone_id}"

    def connect(self, timeout: float = 5.0) -> bool:
        """Connect to the broker. Blocking; call it via asyncio.to_thread."""
        try:
            self._client.connect(self._broker, self._port, keepalive=60)
            self._client.loop_start()
        except OSError as e:
            logger.error("MQTT connection failed: %s", e)
            return False
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self._connected:
                return True
            time.sleep(0.1)
        logger.warning("MQTT connection timeout")
        return False

    def disconnect(self) -> None:
        self._client.loop_stop()
        self._client.disconnect()
        self._connected = False

    def publish_telemetry(self, snapshot: TelemetrySnapshot) -> bool:
        if not self._connected:
            return False
        result = self._client.publish(
            self.telemetry_topic, json.dumps(snapshot.to_dict()), qos=self._qos
        )
        return result.rc == mqtt.MQTT_ERR_SUCCESS

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused: %s", reason_code)
            return
        self._connected = True
        logger.info("MQTT connected to %s:%d", self._broker, self._port)
        client.subscribe(self.command_topic, qos=self._qos)
        logger.info("Subscribed to %s", self.command_topic)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._connected = False
        if reason_code.is_failure:
            logger.warning("MQTT unexpected disconnect: %s", reason_code)

    def _on_message(self, client, userdata, msg) -> None:
        try:
            command = command_from_dict(json.loads(msg.payload.decode()))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Invalid payload on %s: %s", msg.topic, e)
            return
        except (TypeError, ValueError) as e:
            logger.warning("Rejected command on %s: %s", msg.topic, e)
            return
        logger.debug("Command received: %s", command)
        self._commands.send_threadsafe(self._loop, command)
