"""MQTT adapter used to announce robot telemetry to outside consumers."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import paho.mqtt.client as mqtt

from ..config import MQTTConfig
from ..core.protocols import MessagePublisher
from ..robot.entity import RobotEntity

LOGGER = logging.getLogger(__name__)


class MQTTConnectionError(RuntimeError):
    """Raised when the MQTT client fails to connect or publish."""


class MQTTClient:
    """Async-friendly wrapper over the threaded paho-mqtt client."""

    def __init__(
        self,
        config: MQTTConfig,
        *,
        client_id: str,
        keepalive: int = 60,
    ) -> None:
        self.config = config
        self.client_id = client_id
        self.keepalive = keepalive

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected_event: Optional[asyncio.Event] = None
        self._disconnect_event: Optional[asyncio.Event] = None
        self._last_connect_rc: Optional[int] = None
        self._connected = False

    async def connect(self, timeout: float = 30.0) -> None:
        """Connect to the broker and wait for the CONNACK."""

        self._loop = asyncio.get_running_loop()
        self._connected_event = asyncio.Event()
        self._disconnect_event = asyncio.Event()
        self._last_connect_rc = None

        client = mqtt.Client(client_id=self.client_id)
        client.enable_logger(LOGGER)
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        self._client = client

        LOGGER.info(
            "Connecting to MQTT broker %s:%s",
            self.config.broker_host,
            self.config.broker_port,
        )
        client.connect_async(
            self.config.broker_host, self.config.broker_port, self.keepalive
        )
        client.loop_start()

        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
            if self._last_connect_rc != 0:
                raise MQTTConnectionError(
                    f"MQTT broker rejected connection (rc={self._last_connect_rc})"
                )
        except asyncio.TimeoutError as exc:
            client.loop_stop()
            self._client = None
            raise MQTTConnectionError("Timed out connecting to MQTT broker") from exc
        except MQTTConnectionError:
            client.loop_stop()
            self._client = None
            raise

    async def disconnect(self, timeout: float = 5.0) -> None:
        if not self._client:
            return

        assert self._disconnect_event is not None
        self._client.disconnect()
        try:
            await asyncio.wait_for(self._disconnect_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("MQTT broker did not acknowledge disconnect")
        finally:
            self._client.loop_stop()
            self._client = None
            self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def publish(
        self, topic: str, payload: bytes, qos: int = 1, retain: bool = False
    ) -> None:
        if not self._client:
            raise MQTTConnectionError("MQTT client not connected")

        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(f"Publish failed with rc={info.rc}")

    # paho invokes these from its network thread.
    def _on_connect(self, client: mqtt.Client, userdata, flags, rc: int) -> None:
        self._last_connect_rc = rc
        self._connected = rc == 0
        if rc == 0:
            LOGGER.info("Connected to MQTT broker")
        else:
            LOGGER.error("MQTT connection failed with rc=%s", rc)
        self._signal(self._connected_event)

    def _on_disconnect(self, client: mqtt.Client, userdata, rc: int) -> None:
        LOGGER.info("Disconnected from MQTT broker (rc=%s)", rc)
        self._connected = False
        self._signal(self._disconnect_event)

    def _signal(self, event: Optional[asyncio.Event]) -> None:
        if event is None:
            return
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(event.set)
        else:
            event.set()


class TelemetryNotifier:
    """Publishes a robot's telemetry once a refresh cycle completes.

    Register ``notify`` as a telemetry listener on each entity. Publish
    failures are logged; they never reach the polling entity.
    """

    def __init__(
        self, publisher: MessagePublisher, *, topic_prefix: str, qos: int = 1
    ) -> None:
        self._publisher = publisher
        self._topic_prefix = topic_prefix.strip("/")
        self._qos = qos
        self.published = 0

    def topic_for(self, robot_id: str) -> str:
        return f"{self._topic_prefix}/{robot_id}/telemetry"

    def notify(self, entity: RobotEntity, values: Mapping[str, Any]) -> None:
        document = {
            "robotId": entity.id,
            "name": entity.name,
            "values": dict(values),
            "reportedAt": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
        payload = json.dumps(document, separators=(",", ":")).encode("utf-8")
        try:
            self._publisher.publish(self.topic_for(entity.id), payload, qos=self._qos)
        except MQTTConnectionError as exc:
            LOGGER.warning("Telemetry for %s not published: %s", entity.id, exc)
            return
        self.published += 1
