"""
Unit tests for local calendar-date arithmetic.

Run: pytest tests/unit/test_dates.py -v
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from hifz_planner.core.dates import (
    FixedClock,
    add_days,
    days_between,
    is_same_day,
    local_now,
    normalize,
    parse_key,
    to_key,
    today,
)
from hifz_planner.core.exceptions import HifzPlannerError, InvalidDateError


class TestNormalize:
    """Test normalize and parse_key."""

    def test_date_passes_through(self):
        assert normalize(date(2025, 1, 1)) == date(2025, 1, 1)

    def test_datetime_drops_time(self):
        assert normalize(datetime(2025, 1, 1, 23, 59)) == date(2025, 1, 1)

    def test_key_string(self):
        assert normalize("2025-03-09") == date(2025, 3, 9)

    def test_iso_datetime_string_is_truncated(self):
        assert parse_key("2025-03-09T18:30:00") == date(2025, 3, 9)

    def test_aware_datetime_uses_local_calendar(self):
        moment = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        assert normalize(moment) == moment.astimezone().date()

    @pytest.mark.parametrize("value", ["", "2025-13-01", "not-a-date", "2025-1-1", None, 20250101])
    def test_invalid_values_raise(self, value):
        with pytest.raises(InvalidDateError):
            normalize(value)

    def test_invalid_date_error_is_value_error(self):
        with pytest.raises(ValueError):
            normalize("garbage")

    def test_invalid_date_error_carries_value(self):
        with pytest.raises(HifzPlannerError) as exc_info:
            normalize("2025-02-30")
        assert exc_info.value.value == "2025-02-30"


class TestKeys:
    """Test key formatting and day arithmetic."""

    def test_to_key_zero_pads(self):
        assert to_key(date(2025, 1, 5)) == "2025-01-05"

    def test_to_key_roundtrip_through_string(self):
        assert to_key("2025-01-05") == "2025-01-05"

    def test_days_between(self):
        assert days_between("2025-01-08", "2025-01-01") == 7
        assert days_between("2025-01-01", "2025-01-08") == -7

    def test_days_between_ignores_time_of_day(self):
        assert days_between(datetime(2025, 1, 2, 0, 1), datetime(2025, 1, 1, 23, 59)) == 1

    def test_add_days_crosses_month_and_year(self):
        assert add_days("2024-12-31", 1) == date(2025, 1, 1)
        assert add_days("2024-02-28", 1) == date(2024, 2, 29)

    def test_add_days_negative(self):
        assert add_days("2025-03-01", -1) == date(2025, 2, 28)

    def test_is_same_day(self):
        assert is_same_day(datetime(2025, 1, 1, 6), "2025-01-01")
        assert not is_same_day("2025-01-01", "2025-01-02")


class TestFixedClock:
    """Test the injectable clock."""

    def test_now_is_frozen(self):
        clock = FixedClock(datetime(2025, 1, 1, 5, 0))
        assert clock.now() == clock.now() == datetime(2025, 1, 1, 5, 0)

    def test_advance(self):
        clock = FixedClock(datetime(2025, 1, 1, 23, 0))
        clock.advance(hours=2)
        assert clock.now() == datetime(2025, 1, 2, 1, 0)
        assert today(clock) == date(2025, 1, 2)

    def test_advance_by_days(self):
        clock = FixedClock(datetime(2025, 1, 1, 9, 0))
        clock.advance(days=3)
        assert clock.now() - datetime(2025, 1, 1, 9, 0) == timedelta(days=3)

    def test_aware_clock_reads_local_time(self):
        moment = datetime(2025, 1, 1, 23, 30, tzinfo=timezone.utc)
        clock = FixedClock(moment)
        local = moment.astimezone()
        assert local_now(clock) == local
        assert local_now(clock).hour == local.hour
        assert today(clock) == local.date()
        assert to_key(clock.now()) == to_key(today(clock))
