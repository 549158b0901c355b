from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from pytraffic._constants import Stream
from pytraffic._mqtt import MqttPushSource, decode_push_payload, topic_for
from pytraffic.config import TrafficConfig
from pytraffic.exceptions import TrafficError


class _FakeClient:
    def __init__(self) -> None:
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []
        self.credentials: tuple[str, str | None] | None = None
        self.tls = False
        self.connected_to: tuple[str, int] | None = None
        self.loop_running = False
        self.on_connect: Any = None
        self.on_message: Any = None
        self.on_disconnect: Any = None

    def enable_logger(self, _logger: Any) -> None:
        return None

    def username_pw_set(self, username: str, password: str | None) -> None:
        self.credentials = (username, password)

    def tls_set(self) -> None:
        self.tls = True

    def connect_async(self, host: str, port: int, keepalive: int = 60) -> None:
        self.connected_to = (host, port)

    def loop_start(self) -> None:
        self.loop_running = True

    def loop_stop(self) -> None:
        self.loop_running = False

    def disconnect(self) -> None:
        return None

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscribed.append(topic)

    def unsubscribe(self, topic: str) -> None:
        self.unsubscribed.append(topic)


class _Message:
    def __init__(self, topic: str, payload: bytes) -> None:
        self.topic = topic
        self.payload = payload


def _config(**overrides: Any) -> TrafficConfig:
    return TrafficConfig(mqtt_enabled=True, mqtt_host="broker.local", mqtt_topic_prefix="site-1/", **overrides)


def test_topic_for_streams() -> None:
    config = _config()
    assert topic_for(config, Stream.SAMPLES) == "site-1/traffic_data"
    assert topic_for(config, Stream.CONFIGURATION) == "site-1/traffic_config"


def test_decode_payload_bare_and_enveloped() -> None:
    row = {"id": 1, "created_at": "2026-01-01T00:00:00Z"}
    assert decode_push_payload(json.dumps(row).encode()) == row
    assert decode_push_payload(json.dumps({"type": "INSERT", "new": row}).encode()) == row
    assert decode_push_payload(json.dumps({"record": row}).encode()) == row


@pytest.mark.parametrize("payload", [b"\xff\xfe", b"not json", b"[1, 2]"])
def test_decode_payload_rejects_garbage(payload: bytes) -> None:
    with pytest.raises(TrafficError):
        decode_push_payload(payload)


@pytest.mark.asyncio
async def test_start_configures_client_and_resubscribes_on_connect() -> None:
    client = _FakeClient()
    source = MqttPushSource(
        _config(mqtt_username="dash", mqtt_password="pw", mqtt_tls=True, mqtt_port=8883),
        loop=asyncio.get_running_loop(),
        client_factory=lambda: client,
    )
    source.subscribe(Stream.SAMPLES, lambda row: None)

    source.start()

    assert source.is_running
    assert client.connected_to == ("broker.local", 8883)
    assert client.credentials == ("dash", "pw")
    assert client.tls
    assert client.loop_running
    # Nothing is subscribed until the broker accepts the connection.
    assert client.subscribed == []

    client.on_connect(client, None, None, 0, None)
    assert source.is_connected
    assert client.subscribed == ["site-1/traffic_data"]

    source.stop()
    assert not source.is_running
    assert not client.loop_running


@pytest.mark.asyncio
async def test_messages_are_dispatched_on_the_loop() -> None:
    client = _FakeClient()
    source = MqttPushSource(_config(), loop=asyncio.get_running_loop(), client_factory=lambda: client)
    received: list[dict[str, Any]] = []
    source.subscribe(Stream.SAMPLES, received.append)
    source.start()
    client.on_connect(client, None, None, 0, None)

    row = {"id": 7, "created_at": "2026-01-01T00:00:00Z", "event_type": "congestion"}
    client.on_message(client, None, _Message("site-1/traffic_data", json.dumps({"new": row}).encode()))
    client.on_message(client, None, _Message("site-1/traffic_data", b"garbage"))
    client.on_message(client, None, _Message("site-1/traffic_config", json.dumps(row).encode()))
    await asyncio.sleep(0)

    assert received == [row]
    source.stop()


@pytest.mark.asyncio
async def test_callback_errors_do_not_stop_dispatch() -> None:
    client = _FakeClient()
    source = MqttPushSource(_config(), loop=asyncio.get_running_loop(), client_factory=lambda: client)
    received: list[dict[str, Any]] = []

    def _boom(_row: dict[str, Any]) -> None:
        raise RuntimeError("handler bug")

    source.subscribe(Stream.SAMPLES, _boom)
    source.subscribe(Stream.SAMPLES, received.append)
    source.start()

    client.on_message(client, None, _Message("site-1/traffic_data", b'{"id": 1}'))
    await asyncio.sleep(0)

    assert received == [{"id": 1}]
    source.stop()


@pytest.mark.asyncio
async def test_unsubscribe_last_handle_unsubscribes_topic() -> None:
    client = _FakeClient()
    source = MqttPushSource(_config(), loop=asyncio.get_running_loop(), client_factory=lambda: client)
    source.start()
    client.on_connect(client, None, None, 0, None)

    first = source.subscribe(Stream.CONFIGURATION, lambda row: None)
    second = source.subscribe(Stream.CONFIGURATION, lambda row: None)
    assert client.subscribed == ["site-1/traffic_config"]

    source.unsubscribe(first)
    assert client.unsubscribed == []
    source.unsubscribe(second)
    assert client.unsubscribed == ["site-1/traffic_config"]
    source.stop()


@pytest.mark.asyncio
async def test_failed_connect_is_not_marked_connected() -> None:
    client = _FakeClient()
    source = MqttPushSource(_config(), loop=asyncio.get_running_loop(), client_factory=lambda: client)
    source.subscribe(Stream.SAMPLES, lambda row: None)
    source.start()

    client.on_connect(client, None, None, 5, None)

    assert not source.is_connected
    assert client.subscribed == []
    source.stop()
