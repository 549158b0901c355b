"""Pull ingestion.

Point queries against the remote row store, validated into typed rows.
Transport errors propagate; the caller decides whether a failed pull is
skipped or retried. Rows that fail validation are dropped one by one so a
single malformed row never hides the rest of a window.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import ValidationError

from pytraffic._constants import ALERT_PULL_LIMIT, Stream
from pytraffic._transport import DataSource
from pytraffic.models._base import TrafficBaseModel
from pytraffic.models.config_record import ConfigRecord
from pytraffic.models.sample import Sample

_logger = logging.getLogger(__name__)

_RowT = TypeVar("_RowT", bound=TrafficBaseModel)


def parse_rows(model: type[_RowT], rows: Iterable[dict[str, Any]]) -> list[_RowT]:
    """Validate *rows* into *model*, skipping the ones that do not fit."""
    parsed: list[_RowT] = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError:
            _logger.debug("Skipping malformed %s row id=%s", model.__name__, row.get("id"), exc_info=True)
    return parsed


async def fetch_latest_sample(source: DataSource) -> Sample | None:
    """Most recent sample by ``created_at``, or ``None`` if there is none."""
    rows = await source.query_latest(Stream.SAMPLES, limit=1)
    samples = parse_rows(Sample, rows)
    return samples[0] if samples else None


async def fetch_alert_window(source: DataSource, *, limit: int = ALERT_PULL_LIMIT) -> list[Sample]:
    """The newest *limit* samples, newest first, unfiltered."""
    rows = await source.query_latest(Stream.SAMPLES, limit=limit)
    return parse_rows(Sample, rows)


async def fetch_latest_config(source: DataSource) -> ConfigRecord | None:
    """Configuration record with the greatest ``updated_at``."""
    rows = await source.query_latest(Stream.CONFIGURATION, limit=1)
    records = parse_rows(ConfigRecord, rows)
    return records[0] if records else None
