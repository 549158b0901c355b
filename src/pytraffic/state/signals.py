"""Derived signals.

Pure functions of the current sample and the evaluation time. Nothing
here is stored; health is time-based, so re-evaluating the same sample
later can flip it to unhealthy without any new delivery.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pytraffic._constants import DEFAULT_SIGNAL_COLOR, HEALTH_WINDOW_S
from pytraffic.models.sample import EventType, Sample, SignalColor
from pytraffic.models.snapshot import DerivedSignals


def sample_age_seconds(sample: Sample | None, now: datetime) -> float | None:
    if sample is None:
        return None
    return (now - sample.created_at).total_seconds()


def connection_healthy(sample: Sample | None, now: datetime, window: float = HEALTH_WINDOW_S) -> bool:
    """True iff the sample was recorded less than *window* seconds before *now*."""
    if sample is None:
        return False
    return now - sample.created_at < timedelta(seconds=window)


def tilt_alarm(sample: Sample | None) -> bool:
    return sample is not None and sample.is_tilted


def congestion_band(sample: Sample | None) -> bool:
    return sample is not None and sample.congestion


def signal_badge(sample: Sample | None) -> SignalColor:
    """Signal color to show; red when nothing is reported."""
    if sample is None or sample.light_main is None:
        return SignalColor(DEFAULT_SIGNAL_COLOR)
    return sample.light_main


def applied_timing(sample: Sample | None) -> tuple[int, int] | None:
    """Timing the controller reports as in effect, if it reports one."""
    return sample.applied_timing if sample is not None else None


def connection_label(healthy: bool) -> str:
    return "Live" if healthy else "Reconnecting"


def traffic_label(congested: bool) -> str:
    return "Congested" if congested else "Flowing"


def tilt_label(tilted: bool) -> str:
    return "Alert" if tilted else "Stable"


def street_light_label(sample: Sample | None) -> str | None:
    if sample is None:
        return None
    return "ON (Dark)" if sample.street_light_on else "OFF (Light)"


def alert_tone(sample: Sample) -> str:
    """Row tone for an alert log entry: bad, ok, info or neutral."""
    if sample.event_type == EventType.CONGESTION or sample.is_tilted:
        return "bad"
    if sample.event_type == EventType.CLEAR:
        return "ok"
    if sample.event_type == EventType.BOOT:
        return "info"
    return "neutral"


def compute_signals(sample: Sample | None, now: datetime, *, health_window: float = HEALTH_WINDOW_S) -> DerivedSignals:
    healthy = connection_healthy(sample, now, health_window)
    tilted = tilt_alarm(sample)
    congested = congestion_band(sample)
    return DerivedSignals(
        connection_healthy=healthy,
        tilt_alarm=tilted,
        congestion=congested,
        signal_badge=signal_badge(sample),
        connection_label=connection_label(healthy),
        traffic_label=traffic_label(congested),
        tilt_label=tilt_label(tilted),
        street_light_label=street_light_label(sample),
        applied_timing=applied_timing(sample),
        sample_age_seconds=sample_age_seconds(sample, now),
    )
