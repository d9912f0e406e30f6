"""Tests for single bookings through the orchestrator."""

from datetime import date, timedelta

import pytest

from spa_booking.schemas.booking_schema import (
    BookingStatus,
    ConflictType,
    SpecificStaff,
)
from spa_booking.schemas.outcome_schema import BookingErrorKind
from spa_booking.scheduling.catalog import ResourceCatalog
from spa_booking.scheduling.orchestrator import BookingOrchestrator
from spa_booking.scheduling.status_machine import StatusTrigger
from tests.conftest import NOW, SUNDAY, TODAY, TUESDAY, assert_no_overlaps


class TestGrantBooking:
    def test_grants_first_candidate(self, orchestrator, customer):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00", customer)
        assert outcome.success
        booking = outcome.booking
        assert (booking.staff_id, booking.room_id) == ("amara", "room-1")
        assert (booking.start_time, booking.end_time) == ("10:00", "11:00")
        assert (booking.buffer_start, booking.buffer_end) == (585, 675)
        assert booking.status == BookingStatus.PENDING
        assert booking.customer.phone == "6714827765"

    def test_confirm_flag(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", None, SUNDAY, "10:00", confirm=True)
        assert outcome.booking.status == BookingStatus.CONFIRMED

    def test_persists_booking(self, orchestrator, gateway):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        assert [b.id for b in gateway.all_bookings()] == [outcome.booking.id]

    def test_created_at_uses_clock(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        assert outcome.booking.created_at == NOW

    def test_busy_staff_falls_through_to_next(self, orchestrator):
        first = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        second = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        third = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        assert [o.booking.staff_id for o in (first, second, third)] == ["amara", "jonah", "keala"]
        assert [o.booking.room_id for o in (first, second, third)] == ["room-1", "room-3", "room-2"]

    def test_full_day_reports_every_conflict(self, orchestrator, gateway):
        for _ in range(3):
            assert orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00").success
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:30")
        assert not outcome.success
        assert outcome.error == BookingErrorKind.NO_AVAILABLE_SLOT
        assert {c.resource_id for c in outcome.conflicts.staff_conflicts} == {
            "amara", "jonah", "keala",
        }
        assert {c.resource_id for c in outcome.conflicts.room_conflicts} == {
            "room-1", "room-2", "room-3",
        }
        assert len(gateway.all_bookings()) == 3

    def test_specific_staff(self, orchestrator):
        outcome = orchestrator.grant_booking(
            "swedish-massage", SpecificStaff("mateo"), SUNDAY, "14:00",
        )
        assert (outcome.booking.staff_id, outcome.booking.room_id) == ("mateo", "room-2")

    def test_specific_staff_busy_is_not_substituted(self, orchestrator):
        orchestrator.grant_booking("classic-facial", "keala", SUNDAY, "10:00")
        outcome = orchestrator.grant_booking("classic-facial", "keala", SUNDAY, "10:30")
        assert outcome.error == BookingErrorKind.NO_AVAILABLE_SLOT
        assert all(c.resource_id == "keala" for c in outcome.conflicts.staff_conflicts)

    def test_body_scrub_uses_special_room(self, orchestrator):
        outcome = orchestrator.grant_booking("body-scrub", "any", SUNDAY, "12:00")
        assert outcome.booking.room_id == "room-3"

    def test_turnover_gap_allows_back_to_back(self, orchestrator):
        orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "10:00")
        outcome = orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "11:15")
        assert outcome.success
        assert outcome.booking.room_id == "room-1"

    def test_fourteen_minute_gap_pushes_to_other_staff(self, orchestrator):
        orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "11:14")
        assert outcome.booking.staff_id == "jonah"

    def test_service_object_accepted(self, orchestrator, catalog):
        outcome = orchestrator.grant_booking(
            catalog.get_service("brow-wax"), "any", SUNDAY, "09:00",
        )
        assert outcome.booking.service_id == "brow-wax"
        assert outcome.booking.buffer_start == 540

    def test_invariant_holds_after_many_grants(self, orchestrator, gateway):
        for start in ("09:00", "09:30", "10:00", "10:15", "11:00", "11:45", "12:00"):
            for service in ("classic-facial", "brazilian-wax", "swedish-massage"):
                orchestrator.grant_booking(service, "any", SUNDAY, start)
        assert_no_overlaps(gateway.all_bookings())


class TestGrantRejections:
    def test_before_opening(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "08:45")
        assert outcome.error == BookingErrorKind.OUTSIDE_BUSINESS_HOURS

    def test_runs_past_closing(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "19:30")
        assert outcome.error == BookingErrorKind.OUTSIDE_BUSINESS_HOURS

    def test_last_slot_ending_at_close(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "19:00")
        assert outcome.success
        assert outcome.booking.buffer_end == 1200

    def test_malformed_time(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "7pm")
        assert outcome.error == BookingErrorKind.OUTSIDE_BUSINESS_HOURS

    def test_minute_of_day_start_accepted(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, 600)
        assert outcome.booking.start_time == "10:00"

    @pytest.mark.parametrize("start", [2000, 1441, -30])
    def test_out_of_range_minute_is_typed_failure(self, orchestrator, start):
        outcome = orchestrator.grant_booking("classic-facial", "any", SUNDAY, start)
        assert not outcome.success
        assert outcome.error == BookingErrorKind.OUTSIDE_BUSINESS_HOURS

    def test_too_soon(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", TODAY, "09:30")
        assert outcome.error == BookingErrorKind.TOO_SOON
        assert "120 minutes" in outcome.message

    def test_exactly_min_advance_is_allowed(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", TODAY, "10:00")
        assert outcome.success

    def test_business_hours_checked_before_notice(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", TODAY, "08:30")
        assert outcome.error == BookingErrorKind.OUTSIDE_BUSINESS_HOURS

    def test_past_date_is_too_soon(self, orchestrator):
        outcome = orchestrator.grant_booking(
            "classic-facial", "any", TODAY - timedelta(days=1), "12:00",
        )
        assert outcome.error == BookingErrorKind.TOO_SOON

    def test_beyond_booking_window(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", date(2026, 4, 1), "12:00")
        assert outcome.error == BookingErrorKind.BEYOND_BOOKING_WINDOW

    def test_last_day_of_window(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "any", date(2026, 3, 31), "12:00")
        assert outcome.success

    def test_unknown_service(self, orchestrator):
        outcome = orchestrator.grant_booking("nail-art", "any", SUNDAY, "12:00")
        assert outcome.error == BookingErrorKind.UNKNOWN_RESOURCE

    def test_unknown_staff(self, orchestrator):
        outcome = orchestrator.grant_booking("classic-facial", "zed", SUNDAY, "12:00")
        assert outcome.error == BookingErrorKind.UNKNOWN_RESOURCE

    def test_unqualified_staff(self, orchestrator):
        outcome = orchestrator.grant_booking("swedish-massage", "amara", SUNDAY, "12:00")
        assert outcome.error == BookingErrorKind.STAFF_UNAVAILABLE

    def test_staff_day_off(self, orchestrator):
        outcome = orchestrator.grant_booking("swedish-massage", "mateo", TUESDAY, "12:00")
        assert outcome.error == BookingErrorKind.STAFF_UNAVAILABLE

    def test_no_qualified_staff(self, catalog, gateway, config, clock):
        facial_only = ResourceCatalog(
            services=catalog.services, staff=[catalog.get_staff("amara")], rooms=catalog.rooms,
        )
        orchestrator = BookingOrchestrator(facial_only, gateway, config=config, clock=clock)
        outcome = orchestrator.grant_booking("swedish-massage", "any", SUNDAY, "12:00")
        assert outcome.error == BookingErrorKind.NO_AVAILABILITY

    def test_rejection_writes_nothing(self, orchestrator, gateway):
        orchestrator.grant_booking("classic-facial", "any", SUNDAY, "08:00")
        orchestrator.grant_booking("swedish-massage", "amara", SUNDAY, "12:00")
        assert gateway.all_bookings() == []


class TestCancellationFreesSlot:
    def test_cancelled_interval_can_be_rebooked(self, orchestrator):
        first = orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "10:00").booking
        cancelled = orchestrator.transition_status(first.id, StatusTrigger.CANCEL)
        assert cancelled.booking.status == BookingStatus.CANCELLED

        again = orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "10:00")
        assert again.success
        assert (again.booking.staff_id, again.booking.room_id) == ("amara", "room-1")

    def test_cancelled_row_is_kept(self, orchestrator, gateway):
        booking = orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "10:00").booking
        orchestrator.transition_status(booking.id, "cancel")
        assert [b.status for b in gateway.all_bookings()] == [BookingStatus.CANCELLED]


class TestTransitionStatus:
    def test_confirm_then_complete(self, orchestrator):
        booking = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00").booking
        assert orchestrator.transition_status(booking.id, StatusTrigger.CONFIRM).success
        outcome = orchestrator.transition_status(booking.id, StatusTrigger.COMPLETE)
        assert outcome.booking.status == BookingStatus.COMPLETED

    def test_no_show_requires_confirmation(self, orchestrator):
        booking = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00").booking
        outcome = orchestrator.transition_status(booking.id, StatusTrigger.MARK_NO_SHOW)
        assert outcome.error == BookingErrorKind.INVALID_STATUS

    def test_reschedule_trigger_needs_new_time(self, orchestrator):
        booking = orchestrator.grant_booking(
            "classic-facial", "any", SUNDAY, "10:00", confirm=True,
        ).booking
        outcome = orchestrator.transition_status(booking.id, StatusTrigger.RESCHEDULE)
        assert outcome.error == BookingErrorKind.INVALID_STATUS
        assert "reschedule_booking" in outcome.message

    def test_unknown_trigger(self, orchestrator):
        booking = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00").booking
        outcome = orchestrator.transition_status(booking.id, "teleport")
        assert outcome.error == BookingErrorKind.INVALID_STATUS

    def test_missing_booking(self, orchestrator):
        outcome = orchestrator.transition_status("nope", StatusTrigger.CONFIRM)
        assert outcome.error == BookingErrorKind.NOT_FOUND


class TestAvailableStartTimes:
    def test_open_day_lists_every_step(self, orchestrator):
        slots = orchestrator.available_start_times("classic-facial", SUNDAY)
        assert slots[0].time == "09:00"
        assert slots[-1].time == "19:00"
        assert len(slots) == 41
        assert all(slot.available for slot in slots)
        assert (slots[0].staff_id, slots[0].room_id) == ("amara", "room-1")

    def test_today_respects_advance_notice(self, orchestrator):
        slots = {slot.time: slot for slot in orchestrator.available_start_times(
            "classic-facial", TODAY,
        )}
        assert not slots["09:45"].available
        assert "advance" in slots["09:45"].reason
        assert slots["10:00"].available

    def test_buffers_block_neighbouring_starts(self, orchestrator):
        orchestrator.grant_booking("body-scrub", "any", SUNDAY, "10:00")
        slots = {slot.time: slot for slot in orchestrator.available_start_times(
            "body-scrub", SUNDAY,
        )}
        assert not slots["09:00"].available
        assert not slots["11:00"].available
        assert "buffer" in slots["11:00"].reason
        assert slots["11:15"].available
        assert slots["11:15"].room_id == "room-3"

    def test_unknown_service_lists_nothing(self, orchestrator):
        assert orchestrator.available_start_times("nail-art", SUNDAY) == []

    def test_staff_day_off_lists_nothing(self, orchestrator):
        assert orchestrator.available_start_times("swedish-massage", TUESDAY, "mateo") == []


class TestReleaseAbandonedBookings:
    def test_stale_pending_bookings_cancelled(self, orchestrator, gateway):
        booking = orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00").booking
        released = orchestrator.release_abandoned_bookings(now=NOW + timedelta(minutes=31))
        assert [b.id for b in released] == [booking.id]
        assert gateway.all_bookings()[0].status == BookingStatus.CANCELLED

    def test_recent_pending_bookings_kept(self, orchestrator):
        orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00")
        assert orchestrator.release_abandoned_bookings(now=NOW + timedelta(minutes=10)) == []

    def test_confirmed_bookings_untouched(self, orchestrator, clock):
        orchestrator.grant_booking("classic-facial", "any", SUNDAY, "10:00", confirm=True)
        clock.advance(60)
        assert orchestrator.release_abandoned_bookings() == []

    def test_released_slot_can_be_rebooked(self, orchestrator, clock):
        orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "10:00")
        clock.advance(45)
        orchestrator.release_abandoned_bookings()
        outcome = orchestrator.grant_booking("classic-facial", "amara", SUNDAY, "10:00")
        assert outcome.success


class TestConflictTypes:
    def test_room_conflict_only_when_staff_differs(self, orchestrator):
        orchestrator.grant_booking("body-scrub", "jonah", SUNDAY, "10:00")
        outcome = orchestrator.grant_booking("body-scrub", "mateo", SUNDAY, "10:30")
        assert outcome.error == BookingErrorKind.NO_AVAILABLE_SLOT
        assert [c.type for c in outcome.conflicts.conflicts] == [ConflictType.ROOM]
