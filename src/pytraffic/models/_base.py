"""Base model for rows read from the remote store.

Every row model inherits from :class:`TrafficBaseModel` which provides:

* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original row.
* Frozen instances, so a value handed to the presentation layer can
  never be partially updated afterwards.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from pytraffic.ingestion.normalize import is_meaningful, parse_timestamp


def _coerce_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"unrecognised timestamp {value!r}")
    return parsed


RowTimestamp = Annotated[datetime, BeforeValidator(_coerce_timestamp)]
"""Annotated type that coerces ISO strings or epoch numbers to UTC datetimes."""


def _coerce_id(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        # 1.0 and 1 name the same row; 1.5 must not collapse onto it.
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)
    return value


RowId = Annotated[str, BeforeValidator(_coerce_id)]
"""Opaque row identifier; numeric ids are kept as their decimal string."""


class TrafficBaseModel(BaseModel):
    """Base for row models.

    Handles:
    * placeholder values (``""``, ``"--"``, NaN) -> dropped so the field
      default is used instead
    * stashes the original row in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original row dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_placeholders(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw row."""
        if not isinstance(values, dict):
            return values
        original = dict(values)
        cleaned = {key: value for key, value in original.items() if is_meaningful(value)}
        # Keep the caller's raw= when constructing with kwargs.
        if "raw" not in values:
            cleaned["raw"] = original
        return cleaned
