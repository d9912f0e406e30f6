"""
SQLAlchemy-backed booking store.

Two tables:
- ``bookings`` holds every booking row; cancelled rows are kept for audit.
- ``schedule_locks`` holds one versioned row per (staff|room, date). Each
  committing transaction bumps the version of every key it writes, using
  the version it observed when it listed that date. A concurrent writer
  to the same staff or room day makes the bump match zero rows (or trips
  the unique constraint when both create the row), and the commit fails
  with ``TransactionConflictError``.

The engine is opened at SERIALIZABLE isolation by default, so engines
that detect read/write anomalies themselves (PostgreSQL) also surface
them as ``TransactionConflictError``.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from spa_booking.config import DatabaseConfig, settings
from spa_booking.persistence.gateway import (
    BookingGateway,
    BookingTransaction,
    ResourceKey,
    resource_keys,
)
from spa_booking.schemas.booking_schema import (
    Booking,
    BookingStatus,
    BookingType,
    Customer,
    RescheduleLineage,
)
from spa_booking.scheduling.errors import (
    BookingNotFoundError,
    GatewayError,
    TransactionConflictError,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

# SQLSTATE serialization_failure / deadlock_detected
_RETRYABLE_PGCODES = {"40001", "40P01"}


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True)
    service_id = Column(String(64), nullable=False)
    staff_id = Column(String(64), nullable=False, index=True)
    room_id = Column(String(64), nullable=False, index=True)
    booking_date = Column(Date, nullable=False, index=True)

    # Minutes of day, half-open [start, end)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    buffer_start = Column(Integer, nullable=False)
    buffer_end = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    booking_type = Column(String(10), nullable=False, default=BookingType.SINGLE.value)
    booking_group_id = Column(String(36), nullable=True, index=True)

    rescheduled_from = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    reschedule_count = Column(Integer, nullable=False, default=0)
    reschedule_reason = Column(String(255), nullable=True)

    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)
    customer_email = Column(String(255), nullable=True)
    notes = Column(String(500), nullable=True)

    # Naive UTC
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("end_minute > start_minute", name="ck_booking_positive_duration"),
        CheckConstraint(
            "buffer_start <= start_minute AND buffer_end >= end_minute",
            name="ck_booking_buffer_contains_interval",
        ),
    )


class ScheduleLockRow(Base):
    __tablename__ = "schedule_locks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_kind = Column(String(10), nullable=False)
    resource_id = Column(String(64), nullable=False)
    booking_date = Column(Date, nullable=False)
    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        # One lock row per staff member or room per day
        UniqueConstraint(
            "resource_kind", "resource_id", "booking_date", name="uq_schedule_lock_resource_day"
        ),
    )


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _row_to_booking(row: BookingRow) -> Booking:
    lineage = None
    if row.rescheduled_from:
        lineage = RescheduleLineage(
            rescheduled_from=row.rescheduled_from,
            count=row.reschedule_count,
            reason=row.reschedule_reason,
        )
    customer = None
    if row.customer_name is not None:
        customer = Customer(
            name=row.customer_name, phone=row.customer_phone or "", email=row.customer_email
        )
    return Booking(
        id=row.id,
        service_id=row.service_id,
        staff_id=row.staff_id,
        room_id=row.room_id,
        booking_date=row.booking_date,
        start_minute=row.start_minute,
        end_minute=row.end_minute,
        buffer_start=row.buffer_start,
        buffer_end=row.buffer_end,
        status=BookingStatus(row.status),
        booking_type=BookingType(row.booking_type),
        group_id=row.booking_group_id,
        lineage=lineage,
        customer=customer,
        notes=row.notes,
        created_at=row.created_at.replace(tzinfo=timezone.utc),
    )


def _booking_to_row(booking: Booking) -> BookingRow:
    return BookingRow(
        id=booking.id,
        service_id=booking.service_id,
        staff_id=booking.staff_id,
        room_id=booking.room_id,
        booking_date=booking.booking_date,
        start_minute=booking.start_minute,
        end_minute=booking.end_minute,
        buffer_start=booking.buffer_start,
        buffer_end=booking.buffer_end,
        status=booking.status.value,
        booking_type=booking.booking_type.value,
        booking_group_id=booking.group_id,
        rescheduled_from=booking.lineage.rescheduled_from if booking.lineage else None,
        reschedule_count=booking.reschedule_count,
        reschedule_reason=booking.lineage.reason if booking.lineage else None,
        customer_name=booking.customer.name if booking.customer else None,
        customer_phone=booking.customer.phone if booking.customer else None,
        customer_email=booking.customer.email if booking.customer else None,
        notes=booking.notes,
        created_at=_to_naive_utc(booking.created_at),
    )


class _SqlTransaction(BookingTransaction):
    def __init__(self, session: Session) -> None:
        self._session = session
        self._read_versions: dict[date, dict[ResourceKey, int]] = {}
        self._touched: set[ResourceKey] = set()

    def _require_row(self, booking_id: str) -> BookingRow:
        row = self._session.get(BookingRow, booking_id)
        if row is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return row

    def list_bookings_for_date(self, day: date) -> list[Booking]:
        self._session.flush()
        if day not in self._read_versions:
            locks = self._session.scalars(
                select(ScheduleLockRow).where(ScheduleLockRow.booking_date == day)
            ).all()
            self._read_versions[day] = {
                ResourceKey(lock.resource_kind, lock.resource_id, lock.booking_date): lock.version
                for lock in locks
            }
        rows = self._session.scalars(
            select(BookingRow).where(BookingRow.booking_date == day)
        ).all()
        return [_row_to_booking(row) for row in rows]

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        self._session.flush()
        row = self._session.get(BookingRow, booking_id)
        return _row_to_booking(row) if row is not None else None

    def list_group(self, group_id: str) -> list[Booking]:
        self._session.flush()
        rows = self._session.scalars(
            select(BookingRow).where(BookingRow.booking_group_id == group_id)
        ).all()
        return [_row_to_booking(row) for row in rows]

    def insert_booking(self, booking: Booking) -> Booking:
        self._session.add(_booking_to_row(booking))
        self._touched.update(resource_keys(booking))
        return booking

    def update_booking_schedule(
        self,
        booking_id: str,
        new_date: date,
        new_start: int,
        new_end: int,
        new_buffer_start: int,
        new_buffer_end: int,
    ) -> Booking:
        row = self._require_row(booking_id)
        self._touched.update(resource_keys(_row_to_booking(row)))
        row.booking_date = new_date
        row.start_minute = new_start
        row.end_minute = new_end
        row.buffer_start = new_buffer_start
        row.buffer_end = new_buffer_end
        moved = _row_to_booking(row)
        self._touched.update(resource_keys(moved))
        return moved

    def update_staff(self, booking_id: str, staff_id: str) -> Booking:
        row = self._require_row(booking_id)
        self._touched.update(resource_keys(_row_to_booking(row)))
        row.staff_id = staff_id
        reassigned = _row_to_booking(row)
        self._touched.update(resource_keys(reassigned))
        return reassigned

    def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        row = self._require_row(booking_id)
        row.status = status.value
        booking = _row_to_booking(row)
        self._touched.update(resource_keys(booking))
        return booking

    def delete_booking(self, booking_id: str) -> None:
        row = self._require_row(booking_id)
        self._touched.update(resource_keys(_row_to_booking(row)))
        self._session.delete(row)

    def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        self._session.flush()
        rows = self._session.scalars(
            select(BookingRow).where(
                BookingRow.status == BookingStatus.PENDING.value,
                BookingRow.created_at < _to_naive_utc(cutoff),
            )
        ).all()
        return [_row_to_booking(row) for row in rows]

    def bump_locks(self) -> None:
        """Advance the version of every conflict key this transaction writes."""
        for key in sorted(self._touched, key=lambda k: (k.day, k.kind, k.resource_id)):
            seen = self._read_versions.get(key.day)
            if seen is None:
                self._bump_blind(key)
                continue
            expected = seen.get(key, 0)
            if expected == 0:
                self._session.add(ScheduleLockRow(
                    resource_kind=key.kind,
                    resource_id=key.resource_id,
                    booking_date=key.day,
                    version=1,
                ))
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    raise TransactionConflictError(
                        f"Concurrent write to {key.kind} {key.resource_id} on {key.day}"
                    ) from exc
                continue
            result = self._session.execute(
                update(ScheduleLockRow)
                .where(
                    ScheduleLockRow.resource_kind == key.kind,
                    ScheduleLockRow.resource_id == key.resource_id,
                    ScheduleLockRow.booking_date == key.day,
                    ScheduleLockRow.version == expected,
                )
                .values(version=expected + 1),
                execution_options={"synchronize_session": False},
            )
            if result.rowcount != 1:
                raise TransactionConflictError(
                    f"Concurrent write to {key.kind} {key.resource_id} on {key.day}"
                )

    def _bump_blind(self, key: ResourceKey) -> None:
        # Writes to a day this transaction never listed (status changes) need no
        # read validation, only a version bump so concurrent planners re-check.
        lock = self._session.scalars(
            select(ScheduleLockRow).where(
                ScheduleLockRow.resource_kind == key.kind,
                ScheduleLockRow.resource_id == key.resource_id,
                ScheduleLockRow.booking_date == key.day,
            )
        ).first()
        if lock is None:
            self._session.add(ScheduleLockRow(
                resource_kind=key.kind, resource_id=key.resource_id, booking_date=key.day,
                version=1,
            ))
        else:
            lock.version += 1
        self._session.flush()


def _is_retryable(exc: OperationalError) -> bool:
    if getattr(exc.orig, "pgcode", None) in _RETRYABLE_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


class SqlBookingGateway(BookingGateway):
    """Booking gateway over any SQLAlchemy-supported relational store."""

    atomic_pairs = True

    def __init__(
        self,
        url: Optional[str] = None,
        engine: Optional[Engine] = None,
        config: Optional[DatabaseConfig] = None,
        create_schema: bool = True,
    ) -> None:
        config = config or settings.database
        if engine is None:
            url = url or config.url
            options: dict = {"pool_pre_ping": True, "isolation_level": config.isolation_level}
            if not url.startswith("sqlite"):
                options["pool_timeout"] = config.pool_timeout_seconds
            engine = create_engine(url, **options)
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        if create_schema:
            Base.metadata.create_all(engine)
        logger.info("Booking store ready on %s", engine.url.render_as_string(hide_password=True))

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def transaction(self) -> Iterator[BookingTransaction]:
        session = self._session_factory()
        tx = _SqlTransaction(session)
        try:
            yield tx
            tx.bump_locks()
            session.commit()
        except OperationalError as exc:
            session.rollback()
            if _is_retryable(exc):
                raise TransactionConflictError(
                    "Booking transaction was serialized out by a concurrent write"
                ) from exc
            logger.error("Booking store operation failed: %s", exc)
            raise GatewayError(f"Booking store unavailable: {exc}") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Booking store error: %s", exc)
            raise GatewayError(f"Booking store error: {exc}") from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()
