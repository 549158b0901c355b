"""Normalized delivery events.

Both update channels (periodic pull and push notification) wrap what they
received in a :class:`SampleDelivery`. Only the state layer applies them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pytraffic.models.sample import Sample


class DeliverySource(StrEnum):
    PULL = "pull"
    PUSH = "push"


class SampleDelivery(BaseModel):
    """A sample together with how and when it reached us."""

    model_config = ConfigDict(frozen=True)

    sample: Sample
    source: DeliverySource
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
