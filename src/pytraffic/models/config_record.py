"""Timing configuration models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from pytraffic._constants import (
    GREEN_MAX_MS,
    GREEN_MIN_MS,
    GREEN_STEP_MS,
    YELLOW_MAX_MS,
    YELLOW_MIN_MS,
    YELLOW_STEP_MS,
    validate_duration,
)
from pytraffic.ingestion.normalize import safe_int
from pytraffic.models._base import RowId, RowTimestamp, TrafficBaseModel


class ConfigRecord(TrafficBaseModel):
    """One immutable write to the append-only ``traffic_config`` table.

    The active configuration is the record with the greatest
    ``updated_at``; records are never updated in place.
    """

    id: RowId
    normal_green_ms: int
    """Green duration of the main approach, in milliseconds."""
    yellow_ms: int
    """Yellow duration, in milliseconds."""
    updated_at: RowTimestamp
    """Write timestamp (UTC)."""

    @field_validator("normal_green_ms", "yellow_ms", mode="before")
    @classmethod
    def _coerce_ms(cls, value: Any) -> int:
        parsed = safe_int(value)
        if parsed is None:
            raise ValueError(f"duration must be numeric, got {value!r}")
        return parsed

    @property
    def timing(self) -> tuple[int, int]:
        """``(green_ms, yellow_ms)``."""
        return self.normal_green_ms, self.yellow_ms


class TimingValues(BaseModel):
    """A validated green/yellow pair ready to be written."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    green_ms: int
    yellow_ms: int

    @field_validator("green_ms")
    @classmethod
    def _green_in_range(cls, value: int) -> int:
        return validate_duration("green_ms", value, minimum=GREEN_MIN_MS, maximum=GREEN_MAX_MS, step=GREEN_STEP_MS)

    @field_validator("yellow_ms")
    @classmethod
    def _yellow_in_range(cls, value: int) -> int:
        return validate_duration(
            "yellow_ms", value, minimum=YELLOW_MIN_MS, maximum=YELLOW_MAX_MS, step=YELLOW_STEP_MS
        )

    def to_insert_row(self) -> dict[str, int]:
        """Column mapping used when appending a ``traffic_config`` row."""
        return {"normal_green_ms": self.green_ms, "yellow_ms": self.yellow_ms}

    def matches(self, record: ConfigRecord) -> bool:
        return record.timing == (self.green_ms, self.yellow_ms)
