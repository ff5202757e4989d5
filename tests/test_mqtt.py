"""Tests for the MQTT adapter and telemetry notifier."""

import asyncio
import json
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from metabot_fleet.adapters import MQTTClient, MQTTConnectionError, TelemetryNotifier
from metabot_fleet.config import MQTTConfig


class FakeMqttClient:
    """Minimal fake paho-mqtt client for testing."""

    def __init__(self, loop, events, *, rc_connect=0, publish_rc=mqtt.MQTT_ERR_SUCCESS):
        self._loop = loop
        self._events = events
        self._rc_connect = rc_connect
        self._publish_rc = publish_rc
        self.on_connect = None
        self.on_disconnect = None

    def enable_logger(self, logger):
        self._events["logger_enabled"] = True

    def username_pw_set(self, username, password=None):
        self._events["auth"] = (username, password)

    def connect_async(self, host, port, keepalive):
        self._events["connect_args"] = (host, port, keepalive)
        if self.on_connect:
            self._loop.call_soon(self.on_connect, self, None, None, self._rc_connect)

    def loop_start(self):
        self._events["loop_start"] = self._events.get("loop_start", 0) + 1

    def loop_stop(self):
        self._events["loop_stop"] = self._events.get("loop_stop", 0) + 1

    def disconnect(self):
        self._events["disconnect_called"] = True
        if self.on_disconnect:
            self._loop.call_soon(self.on_disconnect, self, None, 0)

    def publish(self, topic, payload, qos=0, retain=False):
        self._events.setdefault("published", []).append((topic, payload, qos, retain))
        return SimpleNamespace(rc=self._publish_rc)


@pytest.fixture
def patch_client(monkeypatch):
    def _install(events, **options):
        loop = asyncio.get_running_loop()
        monkeypatch.setattr(
            "metabot_fleet.adapters.mqtt.mqtt.Client",
            lambda client_id: FakeMqttClient(loop, events, **options),
        )

    return _install


@pytest.mark.asyncio
async def test_connect_publish_disconnect(patch_client):
    events = {}
    patch_client(events)
    config = MQTTConfig(enabled=True, broker_host="broker", broker_port=1884, username="fleet")
    client = MQTTClient(config, client_id="metabot-fleet")

    await client.connect(timeout=1.0)
    assert client.is_connected()
    assert events["connect_args"] == ("broker", 1884, 60)
    assert events["auth"] == ("fleet", None)

    client.publish("metabot/r1/telemetry", b"{}")
    assert events["published"] == [("metabot/r1/telemetry", b"{}", 1, False)]

    await client.disconnect(timeout=1.0)
    assert not client.is_connected()
    assert events["loop_stop"] == 1


@pytest.mark.asyncio
async def test_rejected_connection_raises(patch_client):
    events = {}
    patch_client(events, rc_connect=5)
    client = MQTTClient(MQTTConfig(enabled=True), client_id="metabot-fleet")

    with pytest.raises(MQTTConnectionError):
        await client.connect(timeout=1.0)

    assert events["loop_stop"] == 1
    with pytest.raises(MQTTConnectionError):
        client.publish("topic", b"")


@pytest.mark.asyncio
async def test_publish_failure_raises(patch_client):
    events = {}
    patch_client(events, publish_rc=mqtt.MQTT_ERR_NO_CONN)
    client = MQTTClient(MQTTConfig(enabled=True), client_id="metabot-fleet")
    await client.connect(timeout=1.0)

    with pytest.raises(MQTTConnectionError):
        client.publish("topic", b"")

    await client.disconnect(timeout=1.0)


class FakePublisher:
    def __init__(self, *, fail=False):
        self.fail = fail
        self.messages = []

    def publish(self, topic, payload, qos=1, retain=False):
        if self.fail:
            raise MQTTConnectionError("offline")
        self.messages.append((topic, payload, qos))


def test_notifier_publishes_telemetry_document(make_robot):
    robot = make_robot("r1")
    publisher = FakePublisher()
    notifier = TelemetryNotifier(publisher, topic_prefix="/metabot/")

    notifier.notify(robot, {"h": 1, "version": "1.2.0"})

    (topic, payload, qos), = publisher.messages
    assert topic == "metabot/r1/telemetry"
    assert qos == 1
    document = json.loads(payload)
    assert document["robotId"] == "r1"
    assert document["name"] == "bot-r1"
    assert document["values"] == {"h": 1, "version": "1.2.0"}
    assert "reportedAt" in document
    assert notifier.published == 1


def test_notifier_swallows_publish_failures(make_robot):
    notifier = TelemetryNotifier(FakePublisher(fail=True), topic_prefix="metabot")

    notifier.notify(make_robot("r1"), {"h": 1})

    assert notifier.published == 0
