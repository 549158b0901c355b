"""Push ingestion.

Translates decoded push rows into typed models. A row that does not
validate is dropped with a debug log; push delivery is best-effort.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pytraffic.models.config_record import ConfigRecord
from pytraffic.models.sample import Sample

_logger = logging.getLogger(__name__)


def sample_from_push(row: dict[str, Any]) -> Sample | None:
    try:
        return Sample.model_validate(row)
    except ValidationError:
        _logger.debug("Ignoring malformed sample push id=%s", row.get("id"), exc_info=True)
        return None


def config_from_push(row: dict[str, Any]) -> ConfigRecord | None:
    try:
        return ConfigRecord.model_validate(row)
    except ValidationError:
        _logger.debug("Ignoring malformed config push id=%s", row.get("id"), exc_info=True)
        return None
