"""Normalization helpers.

Centralizes defensive parsing and placeholder handling for rows coming
from either the pull or the push channel.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1e11


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def safe_bool(value: Any) -> bool | None:
    """Coerce the usual truthy/falsy encodings; anything else is ``None``."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "t", "yes", "on"}:
            return True
        if normalized in {"0", "false", "f", "no", "off"}:
            return False
    return None


def is_meaningful(value: Any) -> bool:
    """Return True if the value should survive placeholder stripping."""
    if value is None:
        return False
    if isinstance(value, str) and value.strip() in {"", "--"}:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a row timestamp to an aware UTC datetime.

    Accepts ISO-8601 strings (with ``Z`` or an offset; naive values are
    taken as UTC), epoch seconds and epoch milliseconds. Anything else
    yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        numeric = safe_float(text)
        if numeric is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
        value = numeric
    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)
