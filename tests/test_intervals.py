"""Tests for appointment and buffer interval planning."""

from datetime import date

import pytest

from spa_booking.config import BusinessConfig
from spa_booking.schemas.booking_schema import TimeInterval
from spa_booking.scheduling.errors import OutsideBusinessHoursError
from spa_booking.scheduling.intervals import BUFFER_MINUTES, BusinessHours, plan_interval
from tests.conftest import HOURS, SUNDAY


class TestBusinessHours:
    def test_from_config(self):
        hours = BusinessHours.from_config(BusinessConfig(open_time="09:00", close_time="20:00"))
        assert hours == BusinessHours(540, 1200)


class TestPlanInterval:
    def test_buffer_is_fifteen_minutes(self):
        assert BUFFER_MINUTES == 15

    def test_midday_booking_padded_both_sides(self):
        planned = plan_interval(SUNDAY, 600, 60, HOURS)
        assert (planned.interval.start, planned.interval.end) == (600, 660)
        assert (planned.buffered.start, planned.buffered.end) == (585, 675)

    def test_clamped_at_opening(self):
        planned = plan_interval(SUNDAY, 540, 60, HOURS)
        assert planned.buffered.start == 540

    def test_clamped_at_closing(self):
        planned = plan_interval(SUNDAY, 1140, 60, HOURS)
        assert planned.interval.end == 1200
        assert planned.buffered.end == 1200

    def test_partially_clamped_near_opening(self):
        planned = plan_interval(SUNDAY, 550, 30, HOURS)
        assert planned.buffered.start == 540

    def test_start_before_opening_rejected(self):
        with pytest.raises(OutsideBusinessHoursError, match="before opening"):
            plan_interval(SUNDAY, 525, 60, HOURS)

    def test_end_after_closing_rejected(self):
        with pytest.raises(OutsideBusinessHoursError, match="after closing"):
            plan_interval(SUNDAY, 1170, 60, HOURS)


class TestTimeInterval:
    def test_touching_intervals_do_not_overlap(self):
        a = TimeInterval(day=SUNDAY, start=585, end=675)
        b = TimeInterval(day=SUNDAY, start=675, end=765)
        assert not a.overlaps(b)
        assert not b.overlaps(a)

    def test_one_minute_overlap(self):
        a = TimeInterval(day=SUNDAY, start=585, end=675)
        b = TimeInterval(day=SUNDAY, start=674, end=765)
        assert a.overlaps(b)
        assert a.intersection(b) == TimeInterval(day=SUNDAY, start=674, end=675)

    def test_different_days_never_overlap(self):
        a = TimeInterval(day=SUNDAY, start=600, end=660)
        b = TimeInterval(day=date(2026, 3, 9), start=600, end=660)
        assert not a.overlaps(b)

    def test_empty_interval_rejected(self):
        with pytest.raises(ValueError):
            TimeInterval(day=SUNDAY, start=600, end=600)

    def test_describe(self):
        assert TimeInterval(day=SUNDAY, start=585, end=675).describe() == "2026-03-08 09:45-11:15"
