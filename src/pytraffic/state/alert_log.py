"""Bounded alert log fed by pull snapshots and push increments.

A pull is an authoritative snapshot and replaces the whole log; a push is
an increment and is prepended. The two are not merged by id, so the
visible log reflects whichever path ran last:

* a pushed entry can vanish on the next pull if it already fell outside
  the pull window;
* the same id can briefly appear twice when a push is prepended to a log
  that already contains it.

This is the accepted behaviour of a best-effort live feed, not an audit
log.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pytraffic._constants import ALERT_LOG_CAPACITY, ALERT_PULL_LIMIT
from pytraffic.models.sample import Sample
from pytraffic.state.policy import is_log_worthy, select_alert_window

_logger = logging.getLogger(__name__)


class AlertLogAggregator:
    """Most-recent-first log of log-worthy samples, capped at *capacity*."""

    def __init__(self, *, capacity: int = ALERT_LOG_CAPACITY, pull_limit: int = ALERT_PULL_LIMIT) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if pull_limit < capacity:
            raise ValueError("pull_limit must not be smaller than capacity")
        self._capacity = capacity
        self._pull_limit = pull_limit
        self._entries: tuple[Sample, ...] = ()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def pull_limit(self) -> int:
        """Rows to request per pull before filtering."""
        return self._pull_limit

    @property
    def entries(self) -> tuple[Sample, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def replace_from_pull(self, rows: Sequence[Sample]) -> bool:
        """Replace the log with the filtered head of a pull result.

        *rows* must be ordered newest first, as the pull query returns them.
        An empty result (no rows at all) leaves the log untouched and
        returns False.
        """
        if not rows:
            return False
        self._entries = tuple(select_alert_window(rows, self._capacity))
        return True

    def apply_push(self, sample: Sample) -> bool:
        """Prepend *sample* if it is log-worthy; returns whether it was kept."""
        if not is_log_worthy(sample):
            return False
        self._entries = (sample, *self._entries)[: self._capacity]
        _logger.debug("Alert log prepended id=%s event=%s size=%d", sample.id, sample.event_type, len(self._entries))
        return True
