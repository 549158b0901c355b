"""Push channel: change notifications delivered over MQTT."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from pytraffic._constants import STREAM_TABLES, Stream
from pytraffic._redact import redact_for_log
from pytraffic.config import TrafficConfig
from pytraffic.exceptions import TrafficError

PushCallback = Callable[[dict[str, Any]], None]

# Envelope keys under which change feeds commonly carry the new row.
_ROW_ENVELOPE_KEYS: tuple[str, ...] = ("new", "record", "row", "data")


@dataclass(frozen=True, eq=False)
class SubscriptionHandle:
    """Returned by :meth:`PushSource.subscribe`; pass back to unsubscribe."""

    stream: Stream
    topic: str
    callback: PushCallback


class PushSource(Protocol):
    """Structural interface of the push channel.

    Delivery is at-least-once with no ordering across streams, and nothing
    is delivered while the network is partitioned.
    """

    def subscribe(self, stream: Stream, callback: PushCallback) -> SubscriptionHandle: ...

    def unsubscribe(self, handle: SubscriptionHandle) -> None: ...


def topic_for(config: TrafficConfig, stream: Stream) -> str:
    return f"{config.mqtt_topic_prefix.rstrip('/')}/{STREAM_TABLES[stream]}"


def decode_push_payload(payload: bytes) -> dict[str, Any]:
    """Decode a notification into the changed row.

    Accepts either the bare row object or an envelope carrying it under
    ``new``/``record``/``row``/``data``.

    Raises :class:`TrafficError` if no row object can be found.
    """
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TrafficError("Push payload is not UTF-8 JSON") from exc
    if not isinstance(parsed, dict):
        raise TrafficError("Push payload decoded to non-object JSON")
    for key in _ROW_ENVELOPE_KEYS:
        nested = parsed.get(key)
        if isinstance(nested, dict):
            return nested
    return parsed


class MqttPushSource:
    """Threaded paho-mqtt client that dispatches rows onto an asyncio loop.

    Subscriptions may be added before or after :meth:`start`; topics are
    (re)subscribed on every successful connect, so the channel heals after
    broker restarts without help from callers.
    """

    def __init__(
        self,
        config: TrafficConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        logger: logging.Logger | None = None,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._client_factory = client_factory or self._default_client
        self._client: Any = None
        self._running = False
        self._connected = False
        self._lock = threading.Lock()
        self._handles: dict[str, list[SubscriptionHandle]] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _default_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=f"pytraffic-{secrets.token_hex(6)}",
            protocol=mqtt.MQTTv5,
        )
        return client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Connect in the background and start the network loop."""
        self.stop()
        config = self._config
        self._logger.debug(
            "MQTT push start requested settings=%s",
            redact_for_log(
                {
                    "host": config.mqtt_host,
                    "port": config.mqtt_port,
                    "tls": config.mqtt_tls,
                    "username": config.mqtt_username,
                    "password": config.mqtt_password,
                    "prefix": config.mqtt_topic_prefix,
                }
            ),
        )

        client = self._client_factory()
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        if config.mqtt_tls:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_message = self._on_message
        client.on_disconnect = self._on_disconnect

        client.connect_async(config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Disconnect and stop the network loop if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, stream: Stream, callback: PushCallback) -> SubscriptionHandle:
        topic = topic_for(self._config, stream)
        handle = SubscriptionHandle(stream=stream, topic=topic, callback=callback)
        with self._lock:
            first = topic not in self._handles
            self._handles.setdefault(topic, []).append(handle)
        client = self._client
        if first and client is not None and self._connected:
            client.subscribe(topic, qos=1)
        self._logger.debug("Subscribed stream=%s topic=%s", stream, topic)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        with self._lock:
            handles = self._handles.get(handle.topic, [])
            remaining = [cand for cand in handles if cand is not handle]
            if remaining:
                self._handles[handle.topic] = remaining
                last = False
            else:
                self._handles.pop(handle.topic, None)
                last = bool(handles)
        client = self._client
        if last and client is not None and self._connected:
            client.unsubscribe(handle.topic)
        self._logger.debug("Unsubscribed stream=%s topic=%s", handle.stream, handle.topic)

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client: Any, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
        if getattr(reason_code, "value", reason_code) != 0:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            return
        self._connected = True
        with self._lock:
            topics = list(self._handles)
        self._logger.debug("MQTT connected reason=%s topics=%s", reason_code, topics)
        for topic in topics:
            client.subscribe(topic, qos=1)

    def _on_disconnect(
        self,
        _client: Any,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._connected = False
        if self._running:
            self._logger.debug("MQTT disconnected: %s", reason_code)

    def _on_message(self, _client: Any, _userdata: Any, msg: Any) -> None:
        try:
            row = decode_push_payload(msg.payload)
        except TrafficError:
            self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
            return
        try:
            self._loop.call_soon_threadsafe(self._dispatch, msg.topic, row)
        except RuntimeError:
            # Loop already closed; the monitor has been torn down.
            self._logger.debug("Dropped push for closed loop topic=%s", msg.topic)

    # ------------------------------------------------------------------
    # Dispatch (event-loop thread)
    # ------------------------------------------------------------------

    def _dispatch(self, topic: str, row: dict[str, Any]) -> None:
        with self._lock:
            handles = list(self._handles.get(topic, ()))
        for handle in handles:
            try:
                handle.callback(row)
            except Exception:
                self._logger.debug("Push callback failed topic=%s", topic, exc_info=True)
