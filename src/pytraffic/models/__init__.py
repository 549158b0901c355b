"""Data models for rows read from, and written to, the remote store."""

from pytraffic.models._base import RowId, RowTimestamp, TrafficBaseModel
from pytraffic.models.config_record import ConfigRecord, TimingValues
from pytraffic.models.sample import EventType, Sample, SignalColor
from pytraffic.models.snapshot import ConfigView, DashboardSnapshot, DerivedSignals

__all__ = [
    "ConfigRecord",
    "ConfigView",
    "DashboardSnapshot",
    "DerivedSignals",
    "EventType",
    "RowId",
    "RowTimestamp",
    "Sample",
    "SignalColor",
    "TimingValues",
    "TrafficBaseModel",
]
