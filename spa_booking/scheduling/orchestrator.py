"""
Booking orchestrator: the public face of the scheduling engine.

Every public operation follows the same shape:
    1. Cheap request checks (business hours, advance notice, booking window)
    2. Open a gateway transaction and read the day's bookings
    3. Resolve candidates and pick the first conflict-free (staff, room)
    4. Write, and let the gateway commit
    5. On a commit race, redo steps 1-4 a bounded number of times

``BookingError`` subclasses raised anywhere in that flow are converted
into a failed ``BookingOutcome`` here. ``GatewayError`` is not: a store
that cannot be reached is the caller's problem.
"""

import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from spa_booking.config import AppConfig, settings
from spa_booking.logging_context import get_request_logger, request_scope
from spa_booking.persistence.gateway import BookingGateway, BookingTransaction
from spa_booking.schemas.booking_schema import (
    ANY_STAFF,
    BLOCK_SERVICE_ID,
    AnyQualified,
    Booking,
    BookingStatus,
    BookingType,
    ConflictReport,
    Customer,
    RescheduleLineage,
    SpecificStaff,
    StaffSelector,
    staff_selector,
)
from spa_booking.schemas.catalog_schema import Service
from spa_booking.schemas.outcome_schema import BookingOutcome, SlotAvailability
from spa_booking.scheduling.availability import AvailabilityResolver, Candidate
from spa_booking.scheduling.catalog import ResourceCatalog
from spa_booking.scheduling.conflicts import find_conflicts
from spa_booking.scheduling.errors import (
    BeyondBookingWindowError,
    BookingError,
    BookingNotFoundError,
    ConflictError,
    InvalidTransitionError,
    NoAvailabilityError,
    NoAvailableSlotError,
    OutsideBusinessHoursError,
    PartialCoupleFailureError,
    StaffUnavailableError,
    TooSoonError,
    TransactionConflictError,
)
from spa_booking.scheduling.intervals import BusinessHours, PlannedInterval, plan_interval
from spa_booking.scheduling.status_machine import BookingStatusMachine, StatusTrigger
from spa_booking.utils import business_now, format_minutes, local_datetime, parse_hhmm

logger = get_request_logger(__name__)

ServiceRef = Union[str, Service]
StaffRef = Union[StaffSelector, str, None]
StartTime = Union[str, int]


class BookingOrchestrator:
    """Grants, moves and retires bookings against a persistence gateway.

    Args:
        catalog: Read-only services, staff and rooms.
        gateway: Transactional booking store.
        config: Application settings; defaults to the process settings.
        clock: Returns the current timezone-aware time. Injected by tests.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        gateway: BookingGateway,
        config: Optional[AppConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._catalog = catalog
        self._gateway = gateway
        self._config = config or settings
        self._hours = BusinessHours.from_config(self._config.business)
        self._tz = ZoneInfo(self._config.business.timezone)
        self._resolver = AvailabilityResolver(catalog)
        self._clock = clock or (lambda: business_now(self._config.business.timezone))

    @property
    def catalog(self) -> ResourceCatalog:
        return self._catalog

    # ── Public operations ────────────────────────────────────────

    def grant_booking(
        self,
        service: ServiceRef,
        staff: StaffRef,
        day: date,
        start_time: StartTime,
        customer: Optional[Customer] = None,
        confirm: bool = False,
    ) -> BookingOutcome:
        """Book a single service at a fixed start time.

        The first conflict-free (staff, room) pair in preference order is
        granted. New bookings are ``pending`` until confirmed, unless
        ``confirm`` is set.
        """

        def attempt() -> BookingOutcome:
            svc = self._service(service)
            selector = self._selector(staff)
            planned = self._check_request(day, self._start_minute(start_time), svc.duration)
            with self._gateway.transaction() as tx:
                candidate = self._select_candidate(tx, svc, day, selector, planned)
                booking = tx.insert_booking(self._new_booking(
                    svc, candidate, planned, self._initial_status(confirm), customer,
                ))
            logger.info(
                "Granted %s to %s in %s at %s (booking %s)",
                svc.id, candidate.staff.id, candidate.room.id,
                planned.interval.describe(), booking.id,
            )
            return BookingOutcome(
                success=True,
                message=(
                    f"{svc.name} booked with {candidate.staff.name} in {candidate.room.name} "
                    f"on {day.isoformat()} at {booking.start_time}"
                ),
                bookings=[booking],
            )

        return self._run("Grant", attempt)

    def grant_couple_booking(
        self,
        primary_service: ServiceRef,
        secondary_service: ServiceRef,
        primary_staff: StaffRef,
        secondary_staff: StaffRef,
        day: date,
        start_time: StartTime,
        primary_customer: Optional[Customer] = None,
        secondary_customer: Optional[Customer] = None,
        confirm: bool = False,
    ) -> BookingOutcome:
        """Book two services side by side at the same start time.

        Both rows share a group id and are written together: either both
        become visible or neither does. Each sibling gets its own staff
        member and room.
        """

        def attempt() -> BookingOutcome:
            services = (self._service(primary_service), self._service(secondary_service))
            selectors = (self._selector(primary_staff), self._selector(secondary_staff))
            start_minute = self._start_minute(start_time)
            plans = tuple(self._check_request(day, start_minute, svc.duration) for svc in services)
            customers = (primary_customer, secondary_customer or primary_customer)
            group_id = str(uuid.uuid4())

            if self._gateway.atomic_pairs:
                with self._gateway.transaction() as tx:
                    first = self._plan_sibling(
                        tx, services[0], selectors[0], day, plans[0], customers[0],
                        group_id, confirm,
                    )
                    second = self._plan_sibling(
                        tx, services[1], selectors[1], day, plans[1], customers[1],
                        group_id, confirm, planned_siblings=[first],
                    )
                    first, second = tx.insert_booking_pair(first, second)
            else:
                first, second = self._grant_pair_compensated(
                    services, selectors, day, plans, customers, group_id, confirm,
                )

            logger.info(
                "Granted couple group %s: %s/%s and %s/%s at %s",
                group_id, first.staff_id, first.room_id, second.staff_id, second.room_id,
                plans[0].interval.describe(),
            )
            return BookingOutcome(
                success=True,
                message=(
                    f"Couple booking granted on {day.isoformat()} at {first.start_time}: "
                    f"{services[0].name} and {services[1].name}"
                ),
                bookings=[first, second],
            )

        return self._run("Couple grant", attempt)

    def validate_reschedule(
        self, booking_id: str, new_date: date, new_start_time: StartTime
    ) -> BookingOutcome:
        """Check whether a booking (and its couple sibling) can move.

        Nothing is written. On success ``bookings`` holds the rows as they
        would look after the move.
        """

        def attempt() -> BookingOutcome:
            start_minute = self._start_minute(new_start_time)
            with self._gateway.transaction() as tx:
                moves = self._plan_reschedule(tx, booking_id, new_date, start_minute)
            return BookingOutcome(
                success=True,
                message=(
                    f"Booking {booking_id} can move to {new_date.isoformat()} "
                    f"at {format_minutes(start_minute)}"
                ),
                bookings=[moved for _, moved in moves],
            )

        return self._run("Reschedule check", attempt)

    def reschedule_booking(
        self,
        booking_id: str,
        new_date: date,
        new_start_time: StartTime,
        reason: Optional[str] = None,
    ) -> BookingOutcome:
        """Move a booking, and its couple sibling, to a new date and time.

        Pending rows move in place. Confirmed rows are retired as
        ``rescheduled`` and replaced by a new confirmed row that records
        where it came from.
        """

        def attempt() -> BookingOutcome:
            start_minute = self._start_minute(new_start_time)
            written: list[Booking] = []
            with self._gateway.transaction() as tx:
                for current, moved in self._plan_reschedule(tx, booking_id, new_date, start_minute):
                    written.append(self._apply_move(tx, current, moved, reason))
            for booking in written:
                logger.info(
                    "Rescheduled to %s (booking %s, staff %s, room %s)",
                    booking.interval.describe(), booking.id, booking.staff_id, booking.room_id,
                )
            return BookingOutcome(
                success=True,
                message=(
                    f"Booking moved to {new_date.isoformat()} at {format_minutes(start_minute)}"
                ),
                bookings=written,
            )

        return self._run("Reschedule", attempt)

    def transition_status(
        self, booking_id: str, trigger: Union[StatusTrigger, str]
    ) -> BookingOutcome:
        """Confirm, cancel, complete or mark a booking as a no-show.

        Cancelled rows stay in the store; they simply stop blocking time.
        """

        def attempt() -> BookingOutcome:
            try:
                event = StatusTrigger(trigger)
            except ValueError:
                raise InvalidTransitionError(f"Unknown status trigger {trigger!r}") from None
            if event == StatusTrigger.RESCHEDULE:
                raise InvalidTransitionError(
                    "Rescheduling needs a new date and time; use reschedule_booking"
                )
            with self._gateway.transaction() as tx:
                booking = self._require_booking(tx, booking_id)
                new_status = BookingStatusMachine(booking.status).transition(event)
                updated = tx.update_status(booking_id, new_status)
            logger.info(
                "Booking %s: %s -> %s", booking_id, booking.status.value, new_status.value
            )
            return BookingOutcome(
                success=True,
                message=f"Booking {booking_id} is now {new_status.value}",
                bookings=[updated],
            )

        return self._run("Status change", attempt, slot_contended=False)

    def reassign_staff(
        self, booking_id: str, new_staff_id: str, reason: Optional[str] = None
    ) -> BookingOutcome:
        """Hand a booking to another therapist. Time and room stay as they are.

        The new therapist must be qualified, working that day, free on the
        staff line (the booking itself excluded), and must not already be
        serving the other half of the same couple booking.
        """

        def attempt() -> BookingOutcome:
            with self._gateway.transaction() as tx:
                booking = self._require_booking(tx, booking_id)
                if not booking.is_active or booking.is_block:
                    raise InvalidTransitionError(
                        f"Booking {booking_id} is {booking.status.value} "
                        f"{booking.booking_type.value} and cannot be reassigned"
                    )
                if booking.staff_id == new_staff_id:
                    raise InvalidTransitionError(
                        f"Booking {booking_id} is already assigned to {new_staff_id}"
                    )
                staff = self._catalog.get_staff(new_staff_id)
                service = self._catalog.get_service(booking.service_id)
                self._resolver.check_staff(staff, service, booking.booking_date)

                if booking.group_id and any(
                    sibling.staff_id == staff.id
                    for sibling in tx.list_group(booking.group_id)
                    if sibling.id != booking.id and sibling.is_active
                ):
                    raise StaffUnavailableError(
                        f"{staff.name} is already serving the other half of this couple booking"
                    )

                planned = PlannedInterval(
                    interval=booking.interval, buffered=booking.buffered_interval,
                )
                found = find_conflicts(
                    staff.id, booking.room_id, planned,
                    tx.list_bookings_for_date(booking.booking_date), {booking.id},
                )
                report = ConflictReport(conflicts=found.staff_conflicts)
                if report.has_conflicts:
                    raise ConflictError(
                        f"{staff.name} is not free for booking {booking_id}: {report.summary()}",
                        report,
                    )
                updated = tx.update_staff(booking.id, staff.id)

            logger.info(
                "Booking %s reassigned from %s to %s (%s)",
                booking_id, booking.staff_id, staff.id, reason or "no reason given",
            )
            return BookingOutcome(
                success=True,
                message=f"Booking {booking_id} reassigned from {booking.staff_id} to {staff.name}",
                bookings=[updated],
            )

        return self._run("Staff reassignment", attempt, slot_contended=False)

    def block_time(
        self,
        staff_id: str,
        room_id: str,
        day: date,
        start_time: StartTime,
        end_time: StartTime,
        reason: str,
    ) -> BookingOutcome:
        """Hold a therapist and a room for non-client time.

        A block is a confirmed row of type ``block`` that takes part in
        conflict checks like any appointment, buffer included. Advance
        notice and the booking window do not apply. Lift a block with
        ``transition_status(block_id, StatusTrigger.CANCEL)``.
        """

        def attempt() -> BookingOutcome:
            staff = self._catalog.get_staff(staff_id)
            room = self._catalog.get_room(room_id)
            start_minute = self._start_minute(start_time)
            end_minute = self._start_minute(end_time)
            if end_minute <= start_minute:
                raise OutsideBusinessHoursError(
                    f"Block must end after it starts ({format_minutes(start_minute)}"
                    f"-{format_minutes(end_minute)})"
                )
            planned = plan_interval(day, start_minute, end_minute - start_minute, self._hours)
            with self._gateway.transaction() as tx:
                report = find_conflicts(
                    staff.id, room.id, planned, tx.list_bookings_for_date(day),
                )
                if report.has_conflicts:
                    raise ConflictError(
                        f"Cannot block {planned.interval.describe()}: {report.summary()}",
                        report,
                    )
                block = tx.insert_booking(Booking(
                    service_id=BLOCK_SERVICE_ID,
                    staff_id=staff.id,
                    room_id=room.id,
                    booking_date=day,
                    start_minute=planned.interval.start,
                    end_minute=planned.interval.end,
                    buffer_start=planned.buffered.start,
                    buffer_end=planned.buffered.end,
                    status=BookingStatus.CONFIRMED,
                    booking_type=BookingType.BLOCK,
                    notes=f"Time blocked for: {reason}",
                    created_at=self._clock(),
                ))
            logger.info(
                "Blocked %s for %s in %s (block %s)",
                planned.interval.describe(), staff.id, room.id, block.id,
            )
            return BookingOutcome(
                success=True,
                message=(
                    f"Blocked {staff.name} and {room.name} on {day.isoformat()} "
                    f"{block.start_time}-{block.end_time}"
                ),
                bookings=[block],
            )

        return self._run("Time block", attempt)

    def available_start_times(
        self, service: ServiceRef, day: date, staff: StaffRef = ANY_STAFF
    ) -> list[SlotAvailability]:
        """List every start time on ``day`` with whether it can be granted now.

        Starts step through the day from opening while the service still
        ends by closing. Unknown services and unavailable therapists yield
        an empty list.
        """
        try:
            svc = self._service(service)
            candidates = self._resolver.resolve(svc, day, self._selector(staff))
        except BookingError as exc:
            logger.info("No slots for %s on %s: %s", service, day.isoformat(), exc.message)
            return []

        with self._gateway.transaction() as tx:
            existing = tx.list_bookings_for_date(day)

        step = self._config.scheduling.slot_step_minutes
        slots: list[SlotAvailability] = []
        last_start = self._hours.close_minute - svc.duration
        for start in range(self._hours.open_minute, last_start + 1, step):
            label = format_minutes(start)
            try:
                planned = self._check_request(day, start, svc.duration)
            except BookingError as exc:
                slots.append(SlotAvailability(time=label, available=False, reason=exc.message))
                continue
            if not candidates:
                slots.append(SlotAvailability(
                    time=label, available=False,
                    reason=f"No qualified staff or room for {svc.name}",
                ))
                continue
            chosen = self._first_free(candidates, planned, existing)
            if chosen is None:
                slots.append(SlotAvailability(
                    time=label, available=False,
                    reason="Every qualified staff member or room is booked (buffer zones apply)",
                ))
            else:
                slots.append(SlotAvailability(
                    time=label, available=True, staff_id=chosen.staff.id, room_id=chosen.room.id,
                ))
        return slots

    def release_abandoned_bookings(self, now: Optional[datetime] = None) -> list[Booking]:
        """Cancel pending bookings that were never confirmed in time.

        Returns the bookings that were cancelled.
        """
        now = now or self._clock()
        cutoff = now - timedelta(minutes=self._config.scheduling.abandoned_pending_minutes)
        with self._gateway.transaction() as tx:
            released = [
                tx.update_status(
                    stale.id,
                    BookingStatusMachine(stale.status).transition(StatusTrigger.CANCEL),
                )
                for stale in tx.list_pending_created_before(cutoff)
            ]
        if released:
            logger.info(
                "Released %d abandoned pending bookings created before %s",
                len(released), cutoff.isoformat(),
            )
        return released

    # ── Request checks ───────────────────────────────────────────

    def _service(self, service: ServiceRef) -> Service:
        if isinstance(service, Service):
            return service
        return self._catalog.get_service(service)

    @staticmethod
    def _selector(staff: StaffRef) -> StaffSelector:
        if isinstance(staff, (SpecificStaff, AnyQualified)):
            return staff
        return staff_selector(staff)

    @staticmethod
    def _start_minute(start_time: StartTime) -> int:
        if isinstance(start_time, int):
            if not 0 <= start_time <= 24 * 60:
                raise OutsideBusinessHoursError(
                    f"Start minute {start_time} is not a time of day (0-1440)"
                )
            return start_time
        try:
            return parse_hhmm(start_time)
        except ValueError as exc:
            raise OutsideBusinessHoursError(str(exc)) from None

    @staticmethod
    def _initial_status(confirm: bool) -> BookingStatus:
        return BookingStatus.CONFIRMED if confirm else BookingStatus.PENDING

    def _check_request(self, day: date, start_minute: int, duration: int) -> PlannedInterval:
        """Business hours, then advance notice, then booking window."""
        planned = plan_interval(day, start_minute, duration, self._hours)
        sched = self._config.scheduling

        now = self._clock()
        starts_at = local_datetime(day, start_minute, self._config.business.timezone)
        if starts_at < now + timedelta(minutes=sched.min_advance_minutes):
            raise TooSoonError(
                f"Appointments must be booked at least {sched.min_advance_minutes} minutes "
                f"in advance; {day.isoformat()} {format_minutes(start_minute)} is too soon"
            )

        today = now.astimezone(self._tz).date()
        if day > today + timedelta(days=sched.max_advance_days):
            raise BeyondBookingWindowError(
                f"Bookings open {sched.max_advance_days} days ahead; "
                f"{day.isoformat()} is not bookable yet"
            )
        return planned

    # ── Candidate selection ──────────────────────────────────────

    @staticmethod
    def _first_free(
        candidates: Iterable[Candidate],
        planned: PlannedInterval,
        existing: Sequence[Booking],
        exclude_ids: Iterable[str] = (),
    ) -> Optional[Candidate]:
        excluded = frozenset(exclude_ids)
        for candidate in candidates:
            report = find_conflicts(
                candidate.staff.id, candidate.room.id, planned, existing, excluded,
            )
            if not report.has_conflicts:
                return candidate
        return None

    def _select_candidate(
        self,
        tx: BookingTransaction,
        service: Service,
        day: date,
        selector: StaffSelector,
        planned: PlannedInterval,
        planned_siblings: Sequence[Booking] = (),
    ) -> Candidate:
        """Pick the first conflict-free candidate against the day's schedule.

        Raises:
            NoAvailabilityError: Nobody qualified works that day, or no room fits.
            NoAvailableSlotError: Every candidate conflicts; carries the merged report.
        """
        candidates = self._resolver.resolve(service, day, selector)
        if not candidates:
            raise NoAvailabilityError(
                f"No staff member and room can perform {service.name} on {day.isoformat()}"
            )

        existing = [*tx.list_bookings_for_date(day), *planned_siblings]
        merged = ConflictReport()
        for candidate in candidates:
            report = find_conflicts(
                candidate.staff.id, candidate.room.id, planned, existing,
            )
            if not report.has_conflicts:
                logger.debug(
                    "Candidate %s/%s is free at %s",
                    candidate.staff.id, candidate.room.id, planned.buffered.describe(),
                )
                return candidate
            merged = merged.merge(report)

        raise NoAvailableSlotError(
            f"No staff member and room are free for {service.name} at "
            f"{planned.interval.describe()}: {merged.summary()}",
            merged,
        )

    def _new_booking(
        self,
        service: Service,
        candidate: Candidate,
        planned: PlannedInterval,
        status: BookingStatus,
        customer: Optional[Customer],
        group_id: Optional[str] = None,
    ) -> Booking:
        return Booking(
            service_id=service.id,
            staff_id=candidate.staff.id,
            room_id=candidate.room.id,
            booking_date=planned.interval.day,
            start_minute=planned.interval.start,
            end_minute=planned.interval.end,
            buffer_start=planned.buffered.start,
            buffer_end=planned.buffered.end,
            status=status,
            booking_type=BookingType.COUPLE if group_id else BookingType.SINGLE,
            group_id=group_id,
            customer=customer,
            created_at=self._clock(),
        )

    # ── Couples ──────────────────────────────────────────────────

    def _plan_sibling(
        self,
        tx: BookingTransaction,
        service: Service,
        selector: StaffSelector,
        day: date,
        planned: PlannedInterval,
        customer: Optional[Customer],
        group_id: str,
        confirm: bool,
        planned_siblings: Sequence[Booking] = (),
    ) -> Booking:
        candidate = self._select_candidate(
            tx, service, day, selector, planned, planned_siblings=planned_siblings,
        )
        return self._new_booking(
            service, candidate, planned, self._initial_status(confirm), customer, group_id,
        )

    def _grant_pair_compensated(
        self,
        services: tuple[Service, Service],
        selectors: tuple[StaffSelector, StaffSelector],
        day: date,
        plans: tuple[PlannedInterval, PlannedInterval],
        customers: tuple[Optional[Customer], Optional[Customer]],
        group_id: str,
        confirm: bool,
    ) -> tuple[Booking, Booking]:
        """Write siblings one at a time and undo the first if the second fails."""
        with self._gateway.transaction() as tx:
            first = tx.insert_booking(self._plan_sibling(
                tx, services[0], selectors[0], day, plans[0], customers[0], group_id, confirm,
            ))

        try:
            with self._gateway.transaction() as tx:
                second = tx.insert_booking(self._plan_sibling(
                    tx, services[1], selectors[1], day, plans[1], customers[1],
                    group_id, confirm,
                ))
        except BaseException as exc:
            logger.warning(
                "Second half of couple group %s failed; removing booking %s", group_id, first.id,
            )
            with self._gateway.transaction() as tx:
                tx.delete_booking(first.id)
            if isinstance(exc, BookingError) and not isinstance(exc, TransactionConflictError):
                raise PartialCoupleFailureError(
                    f"{services[1].name} could not be booked alongside {services[0].name}, "
                    f"so neither was booked: {exc.message}",
                    exc.report,
                ) from exc
            raise
        return first, second

    # ── Reschedule ───────────────────────────────────────────────

    @staticmethod
    def _require_booking(tx: BookingTransaction, booking_id: str) -> Booking:
        booking = tx.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    def _plan_reschedule(
        self, tx: BookingTransaction, booking_id: str, new_date: date, start_minute: int
    ) -> list[tuple[Booking, Booking]]:
        """Validate a move and return ``(current, moved)`` for every affected row.

        Staff and rooms stay fixed. The rows being moved never conflict with
        themselves; a couple sibling is also checked against the booking's
        new position.

        Raises:
            ConflictError: The booking or its sibling collides at the new time.
        """
        booking = self._require_booking(tx, booking_id)
        if not booking.is_active:
            raise InvalidTransitionError(
                f"Booking {booking_id} is {booking.status.value} and cannot be rescheduled"
            )
        if booking.is_block:
            raise InvalidTransitionError(
                f"Booking {booking_id} is a time block; cancel it and block the new time instead"
            )

        group = [booking]
        if booking.group_id:
            group += [
                sibling for sibling in tx.list_group(booking.group_id)
                if sibling.id != booking.id and sibling.is_active
            ]
        exclude_ids = frozenset(member.id for member in group)
        existing = tx.list_bookings_for_date(new_date)

        moves: list[tuple[Booking, Booking]] = []
        report = ConflictReport()
        for member in group:
            service = self._catalog.get_service(member.service_id)
            planned = self._check_request(new_date, start_minute, service.duration)
            self._resolver.check_staff(
                self._catalog.get_staff(member.staff_id), service, new_date,
            )
            report = report.merge(find_conflicts(
                member.staff_id, member.room_id, planned, existing, exclude_ids,
            ))
            report = report.merge(find_conflicts(
                member.staff_id, member.room_id, planned,
                [moved for _, moved in moves],
            ))
            moves.append((member, member.evolve(
                booking_date=new_date,
                start_minute=planned.interval.start,
                end_minute=planned.interval.end,
                buffer_start=planned.buffered.start,
                buffer_end=planned.buffered.end,
            )))

        if report.has_conflicts:
            raise ConflictError(
                f"Booking {booking_id} cannot move to {new_date.isoformat()} "
                f"{format_minutes(start_minute)}: {report.summary()}",
                report,
            )
        return moves

    def _apply_move(
        self,
        tx: BookingTransaction,
        current: Booking,
        moved: Booking,
        reason: Optional[str],
    ) -> Booking:
        if current.status == BookingStatus.PENDING:
            return tx.update_booking_schedule(
                current.id,
                moved.booking_date,
                moved.start_minute,
                moved.end_minute,
                moved.buffer_start,
                moved.buffer_end,
            )

        retired = BookingStatusMachine(current.status).transition(StatusTrigger.RESCHEDULE)
        tx.update_status(current.id, retired)
        return tx.insert_booking(moved.evolve(
            id=str(uuid.uuid4()),
            status=BookingStatus.CONFIRMED,
            lineage=RescheduleLineage(
                rescheduled_from=current.id,
                count=current.reschedule_count + 1,
                reason=reason,
            ),
            created_at=self._clock(),
        ))

    # ── Boundary ─────────────────────────────────────────────────

    def _run(
        self,
        action: str,
        attempt: Callable[[], BookingOutcome],
        slot_contended: bool = True,
    ) -> BookingOutcome:
        """Run one operation with bounded commit retries and typed failures.

        When every attempt loses its commit race, operations that claim a
        time slot report ``NO_AVAILABLE_SLOT``; the rest (status changes,
        reassignment) report ``TRANSACTION_CONFLICT``.
        """
        retries = self._config.scheduling.commit_retries
        with request_scope():
            try:
                for attempt_no in range(1, retries + 2):
                    try:
                        return attempt()
                    except TransactionConflictError as exc:
                        logger.warning(
                            "%s lost a commit race (attempt %d of %d): %s",
                            action, attempt_no, retries + 1, exc.message,
                        )
                if slot_contended:
                    raise NoAvailableSlotError(
                        f"{action} failed: the requested time was taken by a concurrent booking"
                    )
                raise TransactionConflictError(
                    f"{action} failed: the booking was changed concurrently {retries + 1} "
                    "times in a row; try again"
                )
            except BookingError as exc:
                logger.info("%s rejected (%s): %s", action, exc.kind.value, exc.message)
                return BookingOutcome(
                    success=False, message=exc.message, error=exc.kind, conflicts=exc.report,
                )
