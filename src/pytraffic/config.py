"""Client configuration for pytraffic."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pytraffic._constants import (
    ALERT_LOG_CAPACITY,
    ALERT_PULL_LIMIT,
    DEFAULT_DASHBOARD_PASSWORD,
    DEFAULT_DASHBOARD_USERNAME,
    DEFAULT_POLL_INTERVAL_S,
    HEALTH_WINDOW_S,
)
from pytraffic.exceptions import TrafficConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, raw: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise TrafficConfigError(f"{env_key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class SiteLocation:
    """Where the monitored installation is.

    Display metadata only; the engine never reads it.
    """

    name: str = "Accra Traffic System"
    lat: float = 5.6037
    lng: float = -0.1870


@dataclasses.dataclass(frozen=True)
class TrafficConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Base URL of the remote row store (PostgREST-compatible REST API).
    api_key : str
        Anonymous API key sent as ``apikey`` and bearer token.
    poll_interval : float
        Seconds between pulls of the latest sample.
    alert_poll_interval : float
        Seconds between pulls of the alert window.
    config_poll_interval : float
        Seconds between pulls of the timing configuration.
    health_window : float
        A sample older than this many seconds marks the feed as stale.
    alert_capacity : int
        Maximum number of alert log entries kept.
    alert_pull_limit : int
        Rows fetched per alert pull before filtering.
    request_timeout : float
        Total timeout for a single REST request, in seconds.
    mqtt_enabled : bool
        Enable the MQTT push channel. Without it the monitor runs pull-only.
    mqtt_host : str
        MQTT broker host.
    mqtt_port : int
        MQTT broker port.
    mqtt_tls : bool
        Use TLS for the broker connection.
    mqtt_username : str or None
        Broker username.
    mqtt_password : str or None
        Broker password.
    mqtt_topic_prefix : str
        Change notifications arrive on ``<prefix>/<table>``.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    dashboard_username : str
        Username accepted by the advisory dashboard sign-in.
    dashboard_password : str
        Password accepted by the advisory dashboard sign-in.
    session_file : str or None
        Where the signed-in flag is persisted. ``None`` keeps it in memory.
    site : SiteLocation
        Location of the monitored installation.
    """

    base_url: str = "http://localhost:54321"
    api_key: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL_S
    alert_poll_interval: float = DEFAULT_POLL_INTERVAL_S
    config_poll_interval: float = DEFAULT_POLL_INTERVAL_S
    health_window: float = HEALTH_WINDOW_S
    alert_capacity: int = ALERT_LOG_CAPACITY
    alert_pull_limit: int = ALERT_PULL_LIMIT
    request_timeout: float = 10.0
    mqtt_enabled: bool = False
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_tls: bool = False
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_topic_prefix: str = "traffic"
    mqtt_keepalive: int = 60
    dashboard_username: str = DEFAULT_DASHBOARD_USERNAME
    dashboard_password: str = DEFAULT_DASHBOARD_PASSWORD
    session_file: str | None = None
    site: SiteLocation = dataclasses.field(default_factory=SiteLocation)

    def __post_init__(self) -> None:
        for name in ("poll_interval", "alert_poll_interval", "config_poll_interval"):
            if getattr(self, name) <= 0:
                raise TrafficConfigError(f"{name} must be positive")
        if self.health_window <= 0:
            raise TrafficConfigError("health_window must be positive")
        if self.alert_capacity < 1:
            raise TrafficConfigError("alert_capacity must be at least 1")
        if self.alert_pull_limit < self.alert_capacity:
            raise TrafficConfigError("alert_pull_limit must not be smaller than alert_capacity")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrafficConfig:
        """Create configuration from environment variables.

        Reads optional ``TRAFFIC_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrafficConfig
            Populated configuration.

        Raises
        ------
        TrafficConfigError
            If a numeric variable cannot be parsed or a value is out of range.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TRAFFIC_BASE_URL": "base_url",
            "TRAFFIC_API_KEY": "api_key",
            "TRAFFIC_MQTT_HOST": "mqtt_host",
            "TRAFFIC_MQTT_USERNAME": "mqtt_username",
            "TRAFFIC_MQTT_PASSWORD": "mqtt_password",
            "TRAFFIC_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
            "TRAFFIC_DASHBOARD_USERNAME": "dashboard_username",
            "TRAFFIC_DASHBOARD_PASSWORD": "dashboard_password",
            "TRAFFIC_SESSION_FILE": "session_file",
        }
        _ENV_FLOAT_MAP = {
            "TRAFFIC_POLL_INTERVAL": "poll_interval",
            "TRAFFIC_ALERT_POLL_INTERVAL": "alert_poll_interval",
            "TRAFFIC_CONFIG_POLL_INTERVAL": "config_poll_interval",
            "TRAFFIC_HEALTH_WINDOW": "health_window",
            "TRAFFIC_REQUEST_TIMEOUT": "request_timeout",
        }
        _ENV_INT_MAP = {
            "TRAFFIC_ALERT_CAPACITY": "alert_capacity",
            "TRAFFIC_ALERT_PULL_LIMIT": "alert_pull_limit",
            "TRAFFIC_MQTT_PORT": "mqtt_port",
            "TRAFFIC_MQTT_KEEPALIVE": "mqtt_keepalive",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, float)
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, int)

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("TRAFFIC_MQTT_ENABLED"), False)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("TRAFFIC_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
