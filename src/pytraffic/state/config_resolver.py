"""Active timing configuration and local edits.

The remote ``traffic_config`` table is append-only: the active
configuration is simply the record with the greatest write timestamp seen
so far, from pull or push. User edits live in :class:`LocalEditState`
until a commit appends a new record; once that record is observed (or a
newer one by someone else) the remote side is authoritative again.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime

from pydantic import ValidationError

from pytraffic._constants import (
    DEFAULT_GREEN_MS,
    DEFAULT_YELLOW_MS,
    GREEN_MAX_MS,
    GREEN_MIN_MS,
    GREEN_STEP_MS,
    YELLOW_MAX_MS,
    YELLOW_MIN_MS,
    YELLOW_STEP_MS,
    validate_duration,
)
from pytraffic.exceptions import TrafficCommitInProgressError, TrafficInvalidEditError
from pytraffic.models.config_record import ConfigRecord, TimingValues
from pytraffic.models.snapshot import ConfigView
from pytraffic.state.policy import supersedes

_logger = logging.getLogger(__name__)

ConfigInsert = Callable[[TimingValues], Awaitable[None]]
"""Appends one configuration row; the store assigns ``updated_at``."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclasses.dataclass
class LocalEditState:
    """In-progress, not yet durable timing edits."""

    green_ms: int
    yellow_ms: int
    dirty: bool = False
    saving: bool = False
    saved_at: datetime | None = None
    revision: int = 0
    in_flight: TimingValues | None = None
    in_flight_revision: int = 0
    pending: TimingValues | None = None
    """Values written successfully but not yet seen in a remote record."""
    pending_baseline: ConfigRecord | None = None
    """Record that was active when ``pending`` was written."""


class ConfigurationResolver:
    """Resolves the active configuration and owns the local edit state."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        default_green_ms: int = DEFAULT_GREEN_MS,
        default_yellow_ms: int = DEFAULT_YELLOW_MS,
    ) -> None:
        self._clock = clock
        self._active: ConfigRecord | None = None
        self._edits = LocalEditState(green_ms=default_green_ms, yellow_ms=default_yellow_ms)

    # ------------------------------------------------------------------
    # Remote records
    # ------------------------------------------------------------------

    @property
    def active(self) -> ConfigRecord | None:
        return self._active

    @property
    def edits(self) -> LocalEditState:
        return self._edits

    def observe(self, record: ConfigRecord) -> bool:
        """Take *record* into account; returns whether it became active."""
        self._settle_pending(record)
        if not supersedes(record, self._active):
            return False
        self._active = record
        return True

    def _settle_pending(self, record: ConfigRecord) -> None:
        """Hand display back to the store once it has caught up.

        Pending values clear when *record* carries them, or when *record*
        is a different write that is newer than the one active at save
        time. Re-observing that baseline record never clears them, so a
        save is not undone by the next pull of the old configuration.
        """
        edits = self._edits
        pending = edits.pending
        if pending is None:
            return
        baseline = edits.pending_baseline
        confirmed = pending.matches(record)
        overtaken = baseline is not None and record.id != baseline.id and record.updated_at > baseline.updated_at
        if confirmed or overtaken:
            _logger.debug("Saved timing settled by remote record id=%s (confirmed=%s)", record.id, confirmed)
            edits.pending = None
            edits.pending_baseline = None

    def observe_many(self, records: Iterable[ConfigRecord]) -> bool:
        changed = False
        for record in records:
            changed = self.observe(record) or changed
        return changed

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def displayed_timing(self) -> tuple[int, int]:
        """``(green_ms, yellow_ms)`` the controls should show."""
        edits = self._edits
        if edits.dirty:
            return edits.green_ms, edits.yellow_ms
        if edits.saving and edits.in_flight is not None:
            return edits.in_flight.green_ms, edits.in_flight.yellow_ms
        if edits.pending is not None:
            return edits.pending.green_ms, edits.pending.yellow_ms
        if self._active is not None:
            return self._active.timing
        return edits.green_ms, edits.yellow_ms

    def view(self) -> ConfigView:
        green_ms, yellow_ms = self.displayed_timing()
        return ConfigView(
            active=self._active,
            green_ms=green_ms,
            yellow_ms=yellow_ms,
            dirty=self._edits.dirty,
            saving=self._edits.saving,
            saved_at=self._edits.saved_at,
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _begin_edit(self) -> LocalEditState:
        edits = self._edits
        if not edits.dirty:
            edits.green_ms, edits.yellow_ms = self.displayed_timing()
        return edits

    def set_green_ms(self, value: int) -> int:
        """Stage a new green duration.

        Raises :class:`TrafficInvalidEditError` outside [2000, 60000] ms or
        off the 500 ms step; the previous value is kept.
        """
        try:
            validate_duration("green_ms", value, minimum=GREEN_MIN_MS, maximum=GREEN_MAX_MS, step=GREEN_STEP_MS)
        except ValueError as exc:
            raise TrafficInvalidEditError(str(exc), field="green_ms", value=value) from exc
        edits = self._begin_edit()
        edits.green_ms = value
        edits.dirty = True
        edits.revision += 1
        return value

    def set_yellow_ms(self, value: int) -> int:
        """Stage a new yellow duration ([500, 10000] ms, 100 ms step)."""
        try:
            validate_duration("yellow_ms", value, minimum=YELLOW_MIN_MS, maximum=YELLOW_MAX_MS, step=YELLOW_STEP_MS)
        except ValueError as exc:
            raise TrafficInvalidEditError(str(exc), field="yellow_ms", value=value) from exc
        edits = self._begin_edit()
        edits.yellow_ms = value
        edits.dirty = True
        edits.revision += 1
        return value

    def discard_edits(self) -> None:
        """Drop unsaved edits; the remote value is displayed again."""
        self._edits.dirty = False

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def begin_commit(self) -> TimingValues:
        """Mark a commit as outstanding and return the values to write."""
        edits = self._edits
        if edits.saving:
            raise TrafficCommitInProgressError("A timing commit is already in progress")
        green_ms, yellow_ms = self.displayed_timing()
        try:
            values = TimingValues(green_ms=green_ms, yellow_ms=yellow_ms)
        except ValidationError as exc:
            raise TrafficInvalidEditError(
                f"Displayed timing is not writable: {exc.errors()[0]['msg']}",
                field="timing",
                value=(green_ms, yellow_ms),
            ) from exc
        edits.saving = True
        edits.in_flight = values
        edits.in_flight_revision = edits.revision
        return values

    def complete_commit(self, values: TimingValues, *, saved_at: datetime | None = None) -> None:
        """Record a successful write of *values*.

        The edited values stay in place; they now match the new record.
        """
        edits = self._edits
        edits.saving = False
        edits.in_flight = None
        edits.saved_at = saved_at if saved_at is not None else self._clock()
        edits.pending = values
        edits.pending_baseline = self._active
        if edits.revision == edits.in_flight_revision:
            edits.green_ms, edits.yellow_ms = values.green_ms, values.yellow_ms
            edits.dirty = False

    def fail_commit(self) -> None:
        """Clear the saving flag; edits stay as they were. No retry."""
        edits = self._edits
        edits.saving = False
        edits.in_flight = None

    async def commit(self, insert: ConfigInsert) -> TimingValues:
        """Append a record with the displayed values via *insert*.

        Errors from *insert* propagate after the saving flag is cleared.
        """
        values = self.begin_commit()
        try:
            await insert(values)
        except BaseException:
            self.fail_commit()
            raise
        self.complete_commit(values)
        return values
