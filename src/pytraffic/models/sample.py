"""Sample (one reading/event) model.

Field names follow the ``traffic_data`` rows the controller writes.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import field_validator

from pytraffic._constants import ROUTINE_EVENT
from pytraffic.ingestion.normalize import safe_bool, safe_float, safe_int, safe_str
from pytraffic.models._base import RowId, RowTimestamp, TrafficBaseModel


class SignalColor(StrEnum):
    """Main signal head color."""

    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


class EventType:
    """Event classifications known at the time of writing.

    The controller may send tags not listed here; ``Sample.event_type``
    is a plain string and must never be matched exhaustively.
    """

    UPDATE = ROUTINE_EVENT
    CONGESTION = "congestion"
    CLEAR = "clear"
    TILT = "tilt"
    BOOT = "boot"


class Sample(TrafficBaseModel):
    """A point-in-time reading from the monitored installation."""

    id: RowId
    """Opaque, globally unique row identifier."""
    created_at: RowTimestamp
    """When the controller recorded the reading (UTC)."""
    event_type: str = ROUTINE_EVENT
    """Event classification (``"update"``, ``"congestion"``, ...)."""
    light_main: SignalColor | None = None
    """Main signal color, if reported."""
    congestion: bool = False
    """Raw congestion flag."""
    tilt_detected: bool | None = None
    """Pole tilt alarm (pitch or roll beyond ~3 degrees)."""
    street_light_on: bool | None = None
    """Ambient-light driven street lamp state."""
    pitch_deg: float | None = None
    roll_deg: float | None = None
    baseline_cm: float | None = None
    """Distance baseline calibrated at boot."""
    threshold_cm: float | None = None
    """Distance below which a vehicle is counted as queued."""
    distance_cm: float | None = None
    """Last measured distance."""
    cfg_green_ms: int | None = None
    """Green duration the controller currently applies (may lag the saved config)."""
    cfg_yellow_ms: int | None = None
    """Yellow duration the controller currently applies."""

    @field_validator("event_type", mode="before")
    @classmethod
    def _coerce_event_type(cls, value: Any) -> str:
        text = safe_str(value)
        return text if text is not None else ROUTINE_EVENT

    @field_validator("light_main", mode="before")
    @classmethod
    def _coerce_light(cls, value: Any) -> SignalColor | None:
        text = safe_str(value)
        if text is None:
            return None
        try:
            return SignalColor(text.lower())
        except ValueError:
            return None

    @field_validator("congestion", mode="before")
    @classmethod
    def _coerce_congestion(cls, value: Any) -> bool:
        return bool(safe_bool(value))

    @field_validator("tilt_detected", "street_light_on", mode="before")
    @classmethod
    def _coerce_optional_flag(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("pitch_deg", "roll_deg", "baseline_cm", "threshold_cm", "distance_cm", mode="before")
    @classmethod
    def _coerce_float(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("cfg_green_ms", "cfg_yellow_ms", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> int | None:
        return safe_int(value)

    @property
    def is_tilted(self) -> bool:
        """Whether the tilt alarm is set (``None`` counts as not tilted)."""
        return self.tilt_detected is True

    @property
    def applied_timing(self) -> tuple[int, int] | None:
        """``(green_ms, yellow_ms)`` the controller reports as in effect.

        ``None`` unless both durations are present and non-zero.
        """
        if not self.cfg_green_ms or not self.cfg_yellow_ms:
            return None
        return self.cfg_green_ms, self.cfg_yellow_ms
