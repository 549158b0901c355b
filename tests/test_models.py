"""Tests for row model parsing with TrafficBaseModel."""

from __future__ import annotations

import math
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from pytraffic.ingestion.normalize import is_meaningful, parse_timestamp, safe_bool, safe_float
from pytraffic.models.config_record import ConfigRecord, TimingValues
from pytraffic.models.sample import Sample, SignalColor

# ------------------------------------------------------------------
# Normalization helpers
# ------------------------------------------------------------------


class TestNormalize:
    def test_placeholders_are_not_meaningful(self) -> None:
        for value in (None, "", "  ", "--", math.nan):
            assert not is_meaningful(value)
        assert is_meaningful(0)
        assert is_meaningful(False)

    def test_safe_float_rejects_bools_and_nan(self) -> None:
        assert safe_float(True) is None
        assert safe_float("nan") is None
        assert safe_float("12.5") == 12.5

    def test_safe_bool_encodings(self) -> None:
        assert safe_bool("TRUE") is True
        assert safe_bool("off") is False
        assert safe_bool(1) is True
        assert safe_bool("maybe") is None

    def test_parse_timestamp_formats(self) -> None:
        expected = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        assert parse_timestamp("2026-01-01T12:00:00Z") == expected
        assert parse_timestamp("2026-01-01T12:00:00") == expected
        assert parse_timestamp("2026-01-01T13:00:00+01:00") == expected
        assert parse_timestamp(expected.timestamp()) == expected
        assert parse_timestamp(expected.timestamp() * 1000) == expected
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(0) is None


# ------------------------------------------------------------------
# Sample
# ------------------------------------------------------------------


class TestSample:
    def test_parses_controller_row(self) -> None:
        sample = Sample.model_validate(
            {
                "id": 42,
                "created_at": "2026-01-01T12:00:00.123456+00:00",
                "event_type": "congestion",
                "light_main": "GREEN",
                "congestion": True,
                "tilt_detected": False,
                "street_light_on": "true",
                "pitch_deg": "1.5",
                "roll_deg": None,
                "distance_cm": 18.2,
                "cfg_green_ms": "12000",
                "cfg_yellow_ms": 3000,
                "unknown_column": "kept in raw",
            }
        )

        assert sample.id == "42"
        assert sample.event_type == "congestion"
        assert sample.light_main is SignalColor.GREEN
        assert sample.congestion is True
        assert sample.street_light_on is True
        assert sample.pitch_deg == 1.5
        assert sample.roll_deg is None
        assert sample.applied_timing == (12000, 3000)
        assert sample.raw["unknown_column"] == "kept in raw"

    def test_placeholder_event_type_defaults_to_update(self) -> None:
        sample = Sample.model_validate({"id": "a", "created_at": "2026-01-01T00:00:00Z", "event_type": "--"})
        assert sample.event_type == "update"

    def test_unknown_event_type_is_kept(self) -> None:
        sample = Sample.model_validate({"id": "a", "created_at": "2026-01-01T00:00:00Z", "event_type": "power_loss"})
        assert sample.event_type == "power_loss"

    def test_missing_timestamp_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Sample.model_validate({"id": 1})

    def test_garbage_timestamp_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Sample.model_validate({"id": 1, "created_at": "not a time"})

    def test_frozen(self) -> None:
        sample = Sample.model_validate({"id": 1, "created_at": "2026-01-01T00:00:00Z"})
        with pytest.raises(ValidationError):
            sample.congestion = True  # type: ignore[misc]


# ------------------------------------------------------------------
# Configuration records
# ------------------------------------------------------------------


class TestConfigRecord:
    def test_parses_row(self) -> None:
        record = ConfigRecord.model_validate(
            {"id": 3, "normal_green_ms": "15000", "yellow_ms": 4000.0, "updated_at": "2026-01-01T00:00:00Z"}
        )
        assert record.id == "3"
        assert record.timing == (15000, 4000)

    def test_float_ids_keep_their_fraction(self) -> None:
        stamp = "2026-01-01T00:00:00Z"
        record = ConfigRecord.model_validate({"id": 3.0, "normal_green_ms": 15000, "yellow_ms": 4000, "updated_at": stamp})
        assert record.id == "3"
        whole = Sample.model_validate({"id": 1.0, "created_at": stamp})
        fractional = Sample.model_validate({"id": 1.5, "created_at": stamp})
        assert whole.id == "1"
        assert fractional.id == "1.5"
        assert whole.id != fractional.id

    def test_missing_duration_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ConfigRecord.model_validate({"id": 3, "yellow_ms": 4000, "updated_at": "2026-01-01T00:00:00Z"})

    def test_timing_values_validate_grid(self) -> None:
        TimingValues(green_ms=60000, yellow_ms=500)
        with pytest.raises(ValidationError):
            TimingValues(green_ms=60001, yellow_ms=500)
        with pytest.raises(ValidationError):
            TimingValues(green_ms=2000, yellow_ms=550)

    def test_insert_row_columns(self) -> None:
        values = TimingValues(green_ms=12000, yellow_ms=3000)
        assert values.to_insert_row() == {"normal_green_ms": 12000, "yellow_ms": 3000}
