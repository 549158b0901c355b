"""Internal constants shared across the library."""

from __future__ import annotations

from enum import StrEnum

USER_AGENT = "pytraffic/0.1"

# ------------------------------------------------------------------
# Remote streams
# ------------------------------------------------------------------


class Stream(StrEnum):
    """Logical record streams exposed by the remote store."""

    SAMPLES = "samples"
    CONFIGURATION = "configuration"


STREAM_TABLES: dict[Stream, str] = {
    Stream.SAMPLES: "traffic_data",
    Stream.CONFIGURATION: "traffic_config",
}

STREAM_ORDER_COLUMNS: dict[Stream, str] = {
    Stream.SAMPLES: "created_at",
    Stream.CONFIGURATION: "updated_at",
}

# ------------------------------------------------------------------
# Reconciliation cadence and bounds
# ------------------------------------------------------------------

DEFAULT_POLL_INTERVAL_S = 1.0
ALERT_LOG_CAPACITY = 50
ALERT_PULL_LIMIT = 80
HEALTH_WINDOW_S = 10.0

ROUTINE_EVENT = "update"
DEFAULT_SIGNAL_COLOR = "red"

# ------------------------------------------------------------------
# Timing configuration ranges (milliseconds)
# ------------------------------------------------------------------

GREEN_MIN_MS = 2000
GREEN_MAX_MS = 60000
GREEN_STEP_MS = 500
YELLOW_MIN_MS = 500
YELLOW_MAX_MS = 10000
YELLOW_STEP_MS = 100

# Slider values shown before any configuration record has been observed.
DEFAULT_GREEN_MS = 10000
DEFAULT_YELLOW_MS = 3000


def validate_duration(field: str, value: int, *, minimum: int, maximum: int, step: int) -> int:
    """Check *value* lies on the ``[minimum, maximum]`` grid of *step*.

    Raises :class:`ValueError` when the value is out of range or off-step.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer number of milliseconds, got {value!r}")
    if not minimum <= value <= maximum:
        raise ValueError(f"{field} must be between {minimum} and {maximum} ms, got {value}")
    if (value - minimum) % step != 0:
        raise ValueError(f"{field} must be a multiple of {step} ms from {minimum}, got {value}")
    return value


# ------------------------------------------------------------------
# Session storage
# ------------------------------------------------------------------

SESSION_USER_KEY = "simple_user"
DEFAULT_DASHBOARD_USERNAME = "adm1n"
DEFAULT_DASHBOARD_PASSWORD = "1234"
