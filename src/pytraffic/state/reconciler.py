"""Current-sample reconciliation.

Two producers feed one sink here: the periodic pull of the latest row and
the push stream. They share no ordering key, so the value is
last-writer-by-arrival: whichever delivery is applied last wins, even if
its ``created_at`` is older. No total order is invented on top of that.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pytraffic.models.sample import Sample
from pytraffic.state.events import DeliverySource, SampleDelivery

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StreamReconciler:
    """Holds the single authoritative current sample.

    The sample object is immutable and swapped as a whole, so a reader
    sees either the previous delivery or the new one, never a mix.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._current: SampleDelivery | None = None
        self._version = 0

    @property
    def current(self) -> Sample | None:
        return self._current.sample if self._current is not None else None

    @property
    def last_source(self) -> DeliverySource | None:
        return self._current.source if self._current is not None else None

    @property
    def observed_at(self) -> datetime | None:
        """Arrival time of the delivery currently held."""
        return self._current.observed_at if self._current is not None else None

    @property
    def version(self) -> int:
        """Number of deliveries applied so far."""
        return self._version

    def apply(self, delivery: SampleDelivery) -> Sample:
        """Replace the current sample unconditionally."""
        previous = self._current
        self._current = delivery
        self._version += 1
        if previous is not None and delivery.sample.created_at < previous.sample.created_at:
            _logger.debug(
                "Applied older sample id=%s via %s after id=%s (arrival order wins)",
                delivery.sample.id,
                delivery.source,
                previous.sample.id,
            )
        return delivery.sample

    def apply_pull(self, sample: Sample) -> Sample:
        return self.apply(SampleDelivery(sample=sample, source=DeliverySource.PULL, observed_at=self._clock()))

    def apply_push(self, sample: Sample) -> Sample:
        return self.apply(SampleDelivery(sample=sample, source=DeliverySource.PUSH, observed_at=self._clock()))
