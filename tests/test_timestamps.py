"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone

import pytest

from mailqueue.utils.timestamps import (
    coerce_timestamp,
    ensure_utc,
    format_timestamp,
    from_epoch_millis,
    hours_before,
    parse_iso_datetime,
    utc_now,
)


class TestUtcNow:
    """Tests for utc_now function."""

    def test_utc_now_returns_utc_datetime(self):
        """Test that utc_now returns a timezone-aware datetime in UTC."""
        now = utc_now()

        assert now.tzinfo == timezone.utc
        assert isinstance(now, datetime)

    def test_utc_now_is_recent(self):
        """Test that utc_now returns a recent timestamp."""
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= now <= after


class TestEnsureUtc:
    """Tests for ensure_utc function."""

    def test_ensure_utc_with_none(self):
        assert ensure_utc(None) is None

    def test_ensure_utc_with_naive_datetime(self):
        """Test that naive datetimes are treated as UTC."""
        result = ensure_utc(datetime(2025, 11, 4, 12, 0, 0))

        assert result.tzinfo == timezone.utc
        assert result.hour == 12

    def test_ensure_utc_with_utc_datetime(self):
        dt = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)
        assert ensure_utc(dt) == dt

    def test_ensure_utc_converts_other_timezone(self):
        """Test that aware datetimes in other zones are converted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        result = ensure_utc(datetime(2025, 11, 4, 14, 0, 0, tzinfo=plus_two))

        assert result.tzinfo == timezone.utc
        assert result.hour == 12


class TestParseIsoDatetime:
    """Tests for parse_iso_datetime function."""

    def test_parse_with_z_suffix(self):
        result = parse_iso_datetime("2025-11-04T12:00:00Z")

        assert result == datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)

    def test_parse_with_offset(self):
        result = parse_iso_datetime("2025-11-04T14:00:00+02:00")

        assert result == datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_parse_naive_string_is_utc(self):
        result = parse_iso_datetime("2025-11-04T12:00:00")

        assert result.tzinfo == timezone.utc

    def test_parse_strips_whitespace(self):
        assert parse_iso_datetime("  2025-11-04T12:00:00Z  ") is not None

    @pytest.mark.parametrize("value", ["", "   ", "not a date", "2025-13-45"])
    def test_parse_invalid_returns_none(self, value):
        assert parse_iso_datetime(value) is None


class TestCoerceTimestamp:
    """Tests for coerce_timestamp, used when scheduling with string times."""

    def test_coerce_none(self):
        assert coerce_timestamp(None) is None

    def test_coerce_datetime(self):
        result = coerce_timestamp(datetime(2025, 11, 4, 12, 0, 0))

        assert result == datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)

    def test_coerce_string(self):
        result = coerce_timestamp("2025-11-04T13:00:00Z")

        assert result == datetime(2025, 11, 4, 13, 0, 0, tzinfo=timezone.utc)

    def test_coerce_invalid_string_raises(self):
        with pytest.raises(ValueError, match="Invalid timestamp"):
            coerce_timestamp("tomorrow-ish")

    @pytest.mark.parametrize("value", [1735689600, 1735689600.5, ["2025-11-04"]])
    def test_coerce_unsupported_type_raises(self, value):
        with pytest.raises(TypeError, match="datetime or ISO 8601 string"):
            coerce_timestamp(value)


class TestFromEpochMillis:
    def test_from_epoch_millis(self):
        assert from_epoch_millis(1735689600000) == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_from_epoch_millis_keeps_milliseconds(self):
        assert from_epoch_millis(1735689600250).microsecond == 250000

    def test_from_epoch_millis_out_of_range(self):
        with pytest.raises(ValueError):
            from_epoch_millis(1e20)


class TestHoursBefore:
    def test_hours_before(self):
        reference = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)

        assert hours_before(reference, 24) == datetime(2025, 11, 3, 12, 0, 0, tzinfo=timezone.utc)

    def test_hours_before_accepts_fractional_hours(self):
        reference = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)

        assert hours_before(reference, 0.5) == datetime(2025, 11, 4, 11, 30, 0, tzinfo=timezone.utc)


class TestFormatTimestamp:
    """Tests for format_timestamp function."""

    def test_format_utc_datetime(self):
        dt = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)

        assert format_timestamp(dt) == "2025-11-04T12:00:00Z"

    def test_format_with_microseconds(self):
        dt = datetime(2025, 11, 4, 12, 0, 0, 123456, tzinfo=timezone.utc)

        assert format_timestamp(dt, include_microseconds=True) == "2025-11-04T12:00:00.123456Z"

    def test_format_converts_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        dt = datetime(2025, 11, 4, 14, 0, 0, tzinfo=plus_two)

        assert format_timestamp(dt) == "2025-11-04T12:00:00Z"

    def test_format_none(self):
        assert format_timestamp(None) == ""
