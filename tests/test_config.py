from __future__ import annotations

import pytest

from pytraffic.config import TrafficConfig
from pytraffic.exceptions import TrafficConfigError


def test_defaults() -> None:
    config = TrafficConfig()
    assert config.poll_interval == 1.0
    assert config.health_window == 10.0
    assert config.alert_capacity == 50
    assert config.alert_pull_limit == 80
    assert config.mqtt_enabled is False
    assert config.site.name == "Accra Traffic System"


def test_from_env_reads_traffic_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRAFFIC_BASE_URL", "https://store.example.com")
    monkeypatch.setenv("TRAFFIC_API_KEY", "anon")
    monkeypatch.setenv("TRAFFIC_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("TRAFFIC_ALERT_CAPACITY", "20")
    monkeypatch.setenv("TRAFFIC_MQTT_ENABLED", "yes")
    monkeypatch.setenv("TRAFFIC_MQTT_PORT", "8883")

    config = TrafficConfig.from_env()

    assert config.base_url == "https://store.example.com"
    assert config.api_key == "anon"
    assert config.poll_interval == 2.5
    assert config.alert_capacity == 20
    assert config.mqtt_enabled is True
    assert config.mqtt_port == 8883


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRAFFIC_BASE_URL", "https://env.example.com")
    monkeypatch.setenv("TRAFFIC_MQTT_ENABLED", "1")

    config = TrafficConfig.from_env(base_url="https://explicit.example.com", mqtt_enabled=False)

    assert config.base_url == "https://explicit.example.com"
    assert config.mqtt_enabled is False


def test_invalid_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRAFFIC_HEALTH_WINDOW", "ten")
    with pytest.raises(TrafficConfigError, match="TRAFFIC_HEALTH_WINDOW"):
        TrafficConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"poll_interval": 0},
        {"health_window": -1},
        {"alert_capacity": 0},
        {"alert_capacity": 60, "alert_pull_limit": 50},
    ],
)
def test_out_of_range_values_are_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(TrafficConfigError):
        TrafficConfig(**kwargs)  # type: ignore[arg-type]
