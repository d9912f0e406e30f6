"""Tests for shared utility functions."""

from datetime import date

import pytest

from spa_booking.utils import (
    format_minutes,
    local_datetime,
    normalize_phone,
    parse_hhmm,
    sunday_weekday,
)


class TestParseHhmm:
    def test_opening_time(self):
        assert parse_hhmm("09:00") == 540

    def test_evening_time(self):
        assert parse_hhmm("19:45") == 1185

    def test_strips_whitespace(self):
        assert parse_hhmm(" 10:30 ") == 630

    @pytest.mark.parametrize("value", ["9:00", "24:00", "10:60", "ten", "", "10-30"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError, match="expected HH:MM"):
            parse_hhmm(value)


class TestFormatMinutes:
    def test_pads_hours_and_minutes(self):
        assert format_minutes(545) == "09:05"

    def test_midnight_end_of_day(self):
        assert format_minutes(1440) == "24:00"

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            format_minutes(-1)


class TestSundayWeekday:
    def test_sunday_is_zero(self):
        assert sunday_weekday(date(2026, 3, 8)) == 0

    def test_saturday_is_six(self):
        assert sunday_weekday(date(2026, 3, 14)) == 6

    def test_tuesday_is_two(self):
        assert sunday_weekday(date(2026, 3, 10)) == 2


class TestLocalDatetime:
    def test_builds_aware_datetime(self):
        value = local_datetime(date(2026, 3, 8), 630, "Pacific/Guam")
        assert value.hour == 10 and value.minute == 30
        assert value.utcoffset().total_seconds() == 10 * 3600


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("671 482 7765") == "6714827765"

    def test_strips_parentheses_and_dashes(self):
        assert normalize_phone("(671) 482-7765") == "6714827765"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+1 671 482 7765") == "+16714827765"

    def test_strips_whitespace(self):
        assert normalize_phone("  6714827765  ") == "6714827765"
