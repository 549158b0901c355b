"""Selection and resolution policy.

This module intentionally contains *no* payload parsing. The ingestion
boundary produces typed rows; these functions only decide which of them
count.
"""

from __future__ import annotations

from collections.abc import Iterable

from pytraffic._constants import ROUTINE_EVENT
from pytraffic.models.config_record import ConfigRecord
from pytraffic.models.sample import Sample


def is_log_worthy(sample: Sample) -> bool:
    """Routine updates are dropped unless they carry a tilt alarm."""
    return sample.event_type != ROUTINE_EVENT or sample.is_tilted


def select_alert_window(rows: Iterable[Sample], capacity: int) -> list[Sample]:
    """Filter a timestamp-descending pull result down to the alert log.

    Order is preserved; only the first *capacity* log-worthy rows are kept.
    """
    selected: list[Sample] = []
    for row in rows:
        if len(selected) >= capacity:
            break
        if is_log_worthy(row):
            selected.append(row)
    return selected


def supersedes(incoming: ConfigRecord, current: ConfigRecord | None) -> bool:
    """Latest write wins; on equal timestamps the later arrival wins."""
    if current is None:
        return True
    return incoming.updated_at >= current.updated_at


def resolve_active(records: Iterable[ConfigRecord], current: ConfigRecord | None = None) -> ConfigRecord | None:
    """Fold *records* into *current* by write timestamp."""
    active = current
    for record in records:
        if supersedes(record, active):
            active = record
    return active
