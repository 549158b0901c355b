"""Read-only snapshots handed to the presentation layer.

Snapshots are rebuilt on every tick/event and never mutated afterwards.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from pytraffic.models.config_record import ConfigRecord
from pytraffic.models.sample import Sample, SignalColor


class DerivedSignals(BaseModel):
    """Health/alert booleans and display bands computed from the current sample."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    connection_healthy: bool
    tilt_alarm: bool
    congestion: bool
    signal_badge: SignalColor
    connection_label: str
    traffic_label: str
    tilt_label: str
    street_light_label: str | None = None
    """``None`` until a sample has been received."""
    applied_timing: tuple[int, int] | None = None
    sample_age_seconds: float | None = None


class ConfigView(BaseModel):
    """Active timing configuration merged with local edit state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    active: ConfigRecord | None
    """Record with the greatest write timestamp observed so far."""
    green_ms: int
    """Green duration to display (local edit if any, else remote)."""
    yellow_ms: int
    dirty: bool
    """The user has edits that have not been written successfully yet."""
    saving: bool
    saved_at: datetime | None
    """Completion time of the last successful commit."""


class DashboardSnapshot(BaseModel):
    """Everything the presentation layer renders, at one instant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    generated_at: datetime
    current: Sample | None
    observed_at: datetime | None = None
    """Arrival time of ``current``."""
    alerts: tuple[Sample, ...]
    config: ConfigView
    signals: DerivedSignals

    @property
    def waiting(self) -> bool:
        """No sample received yet."""
        return self.current is None
