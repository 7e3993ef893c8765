"""Unit tests for timestamp utilities."""

from datetime import date, datetime, timedelta, timezone

import pytest

from src.core.utils.timestamps import (
    EPOCH,
    parse_timestamp,
    to_nvd_timestamp,
)
from src.core.errors import DataValidationError
from src.core.windows import DEFAULT_WINDOW, LookbackWindow


class TestParseTimestamp:
    """Test parse_timestamp function."""

    def test_naive_nvd_string_is_treated_as_utc(self):
        """NVD emits naive ISO strings that are implicitly UTC."""
        result = parse_timestamp("2024-05-01T15:15:07.247")
        assert result == datetime(2024, 5, 1, 15, 15, 7, 247000, tzinfo=timezone.utc)

    def test_plain_date_string_is_midnight_utc(self):
        """CISA KEV dates parse to midnight UTC."""
        assert parse_timestamp("2024-05-01") == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_zulu_suffix(self):
        result = parse_timestamp("2024-05-01T00:00:00.000Z")
        assert result == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        result = parse_timestamp("2024-05-01T09:00:00+09:00")
        assert result == datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)

    def test_date_object(self):
        assert parse_timestamp(date(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not-a-date", 12345])
    def test_unusable_values_return_none(self, value):
        assert parse_timestamp(value) is None


class TestNvdTimestamp:
    def test_millisecond_precision_with_zulu(self):
        dt = datetime(2024, 5, 1, 3, 4, 5, 678901, tzinfo=timezone.utc)
        assert to_nvd_timestamp(dt) == "2024-05-01T03:04:05.678Z"

    def test_aware_non_utc_value_is_converted(self):
        dt = datetime(2024, 5, 1, 9, 0, tzinfo=timezone(timedelta(hours=9)))
        assert to_nvd_timestamp(dt) == "2024-05-01T00:00:00.000Z"


class TestLookbackWindow:
    def test_parse_known_values(self):
        assert LookbackWindow.parse("24h") is LookbackWindow.H24
        assert LookbackWindow.parse("119d") is LookbackWindow.D119

    def test_parse_unknown_value_raises(self):
        with pytest.raises(DataValidationError) as exc_info:
            LookbackWindow.parse("1y")
        assert exc_info.value.field == "timeRange"

    def test_default_window_is_seven_days(self):
        assert DEFAULT_WINDOW is LookbackWindow.D7

    def test_ordering(self):
        assert [w.value for w in LookbackWindow.ascending()] == ["24h", "7d", "30d", "90d", "119d"]
        assert [w.value for w in LookbackWindow.descending()] == ["119d", "90d", "30d", "7d", "24h"]

    def test_longest_window_stays_below_nvd_range_limit(self):
        assert LookbackWindow.D119.duration < timedelta(days=120)

    def test_date_range_and_contains(self):
        now = datetime(2024, 5, 10, tzinfo=timezone.utc)
        start, end = LookbackWindow.D7.date_range(now)
        assert end == now
        assert start == datetime(2024, 5, 3, tzinfo=timezone.utc)
        assert LookbackWindow.D7.contains(datetime(2024, 5, 5, tzinfo=timezone.utc), now)
        assert not LookbackWindow.D7.contains(datetime(2024, 5, 1, tzinfo=timezone.utc), now)
        assert not LookbackWindow.D7.contains(None, now)


def test_epoch_is_aware():
    assert EPOCH.tzinfo is not None
