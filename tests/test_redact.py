from __future__ import annotations

from pytraffic._redact import mask_secret, redact_for_log
from pytraffic.config import TrafficConfig


def test_request_headers_are_masked() -> None:
    headers = {
        "apikey": "anon-key",
        "Authorization": "Bearer anon-key",
        "Accept": "application/json",
    }

    redacted = redact_for_log(headers)

    assert redacted == {
        "apikey": "<redacted>",
        "Authorization": "Bearer <redacted>",
        "Accept": "application/json",
    }
    assert headers["apikey"] == "anon-key"


def test_nested_rows_are_masked() -> None:
    payload = {
        "normal_green_ms": 12000,
        "nested": {"mqtt_password": "pw", "rows": [{"password": "pw", "id": 1}]},
    }

    redacted = redact_for_log(payload)

    assert redacted["normal_green_ms"] == 12000
    assert redacted["nested"]["mqtt_password"] == "<redacted>"
    assert redacted["nested"]["rows"] == [{"password": "<redacted>", "id": 1}]


def test_config_dataclass_is_masked() -> None:
    config = TrafficConfig(api_key="anon-key", mqtt_password="pw", mqtt_username="dash")

    redacted = redact_for_log(config)

    assert redacted["api_key"] == "<redacted>"
    assert redacted["mqtt_password"] == "<redacted>"
    assert redacted["mqtt_username"] == "dash"
    assert "anon-key" not in repr(redacted)


def test_unset_secrets_stay_visible() -> None:
    assert mask_secret(None) is None
    assert mask_secret("") == ""
    assert mask_secret("Basic dXNlcjpwdw==") == "Basic <redacted>"
    assert mask_secret("plain") == "<redacted>"


def test_long_strings_are_shortened() -> None:
    redacted = redact_for_log({"value": "x" * 600}, max_string=10)
    assert redacted["value"] == "x" * 10 + "…"
