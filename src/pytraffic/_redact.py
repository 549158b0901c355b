"""Redaction for debug logging.

Every REST request carries the store API key twice (``apikey`` and the
bearer ``authorization`` header), and :class:`~pytraffic.config.TrafficConfig`
carries the broker and dashboard passwords. Anything that reaches a DEBUG
line goes through :func:`redact_for_log` first.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "api_key",
        "authorization",
        "password",
        "mqtt_password",
        "dashboard_password",
    }
)

_MASK = "<redacted>"


def mask_secret(value: Any) -> Any:
    """Mask a credential, keeping an auth scheme such as ``Bearer``.

    Unset values (``None`` or empty) are returned as-is so logs still show
    that nothing was configured.
    """
    if value is None or value == "":
        return value
    if isinstance(value, str):
        scheme, sep, _token = value.partition(" ")
        if sep and scheme.lower() in {"bearer", "basic"}:
            return f"{scheme} {_MASK}"
    return _MASK


def redact_for_log(value: Any, *, max_string: int = 200) -> Any:
    """Return a copy of *value* with credentials masked.

    Accepts header mappings, row dicts and configuration dataclasses
    (nested dataclasses are flattened to dicts).
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for key, item in value.items():
            name = str(key)
            if name.lower() in _SECRET_KEYS:
                redacted[name] = mask_secret(item)
            else:
                redacted[name] = redact_for_log(item, max_string=max_string)
        return redacted

    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]

    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…"

    return value
