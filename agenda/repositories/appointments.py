"""
Appointment store.

Admission runs as a single transaction: take the store-side guard for the
professional, re-read active bookings, check for overlap, then insert or
update. On PostgreSQL the guard is a transaction-scoped advisory lock and the
exclusion constraint installed by ensure_appointment_schema() backs it up; on
SQLite every transaction starts with BEGIN IMMEDIATE (see
agenda.database.configure_sqlite_engine).
"""

import logging
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.errors import AppointmentNotFound, InvalidRequest, RepositoryError
from agenda.database import APPOINTMENT_OVERLAP_CONSTRAINT, apply_statement_timeout
from agenda.models.appointment import ACTIVE_STATUSES, STATUS_CANCELED, STATUS_SCHEDULED, Appointment
from agenda.scheduling.conflicts import BookedInterval, has_conflict

logger = logging.getLogger(__name__)


def to_storage(instant: datetime) -> datetime:
    """Aware instant -> naive UTC column value."""
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: datetime) -> datetime:
    """Naive UTC column value -> aware instant."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def professional_lock_key(tenant_id: str, professional_id: str) -> int:
    # Stable across processes, unlike hash().
    return zlib.crc32(f'{tenant_id}:{professional_id}'.encode('utf-8'))


def is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, 'orig', None)
    diag = getattr(orig, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', '') or ''
    return constraint_name == APPOINTMENT_OVERLAP_CONSTRAINT or APPOINTMENT_OVERLAP_CONSTRAINT in str(orig)


@dataclass(frozen=True)
class ProposedBooking:
    tenant_id: str
    professional_id: str
    start: datetime
    end: datetime
    service_id: str | None = None
    client_id: str | None = None
    notes: str | None = None


class AppointmentRepository:
    def __init__(self, db: Session, timeout_seconds: float | None = None):
        self.db = db
        self.timeout_seconds = timeout_seconds

    def fetch_active_intervals(
        self,
        professional_id: str,
        tenant_id: str | None,
        range_start: datetime,
        range_end: datetime,
    ) -> list[BookedInterval]:
        """Active bookings of a professional overlapping [range_start, range_end), sorted by start."""
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            return self._query_active_intervals(professional_id, tenant_id, range_start, range_end)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to load appointments for professional %s', professional_id)
            raise RepositoryError('Failed to load appointments.') from exc

    def insert_if_free(
        self,
        booking: ProposedBooking,
        range_start: datetime,
        range_end: datetime,
    ) -> Appointment | None:
        """
        Atomically insert the booking unless it overlaps an active one.

        Returns:
            The created appointment, or None when the interval is taken

        Raises:
            RepositoryError: On store failure; the transaction is rolled back
        """
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            self._acquire_professional_guard(booking.tenant_id, booking.professional_id)

            booked = self._query_active_intervals(
                booking.professional_id, booking.tenant_id, range_start, range_end
            )
            if has_conflict(booking.start, booking.end, booked):
                self.db.rollback()
                return None

            appointment = Appointment(
                business_id=booking.tenant_id,
                professional_id=booking.professional_id,
                service_id=booking.service_id,
                client_id=booking.client_id,
                notes=booking.notes,
                start_time=to_storage(booking.start),
                end_time=to_storage(booking.end),
                status=STATUS_SCHEDULED,
            )
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
            return appointment
        except IntegrityError as exc:
            self.db.rollback()
            if is_overlap_violation(exc):
                return None
            logger.exception('Failed to create appointment for professional %s', booking.professional_id)
            raise RepositoryError('Failed to create appointment.') from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to create appointment for professional %s', booking.professional_id)
            raise RepositoryError('Failed to create appointment.') from exc

    def get(self, appointment_id: int, tenant_id: str) -> Appointment:
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            appointment = self._find(appointment_id, tenant_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to load appointment %s', appointment_id)
            raise RepositoryError('Failed to load appointment.') from exc

        if appointment is None:
            raise AppointmentNotFound('Appointment not found.')
        return appointment

    def reschedule_if_free(
        self,
        appointment_id: int,
        tenant_id: str,
        start: datetime,
        end: datetime,
        range_start: datetime,
        range_end: datetime,
    ) -> Appointment | None:
        """Move a scheduled appointment to [start, end) unless another active booking overlaps it."""
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            appointment = self._find(appointment_id, tenant_id, for_update=True)
            if appointment is None:
                self.db.rollback()
                raise AppointmentNotFound('Appointment not found.')

            self._acquire_professional_guard(tenant_id, appointment.professional_id)
            # Status is only trusted under the row lock.
            if appointment.status != STATUS_SCHEDULED:
                self.db.rollback()
                raise InvalidRequest('Only scheduled appointments can be rescheduled.')

            booked = self._query_active_intervals(
                appointment.professional_id,
                tenant_id,
                range_start,
                range_end,
                exclude_id=appointment.id,
            )
            if has_conflict(start, end, booked):
                self.db.rollback()
                return None

            appointment.start_time = to_storage(start)
            appointment.end_time = to_storage(end)
            self.db.commit()
            self.db.refresh(appointment)
            return appointment
        except IntegrityError as exc:
            self.db.rollback()
            if is_overlap_violation(exc):
                return None
            logger.exception('Failed to reschedule appointment %s', appointment_id)
            raise RepositoryError('Failed to reschedule appointment.') from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to reschedule appointment %s', appointment_id)
            raise RepositoryError('Failed to reschedule appointment.') from exc

    def cancel(self, appointment_id: int, tenant_id: str) -> Appointment:
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            appointment = self._find(appointment_id, tenant_id, for_update=True)
            if appointment is None:
                self.db.rollback()
                raise AppointmentNotFound('Appointment not found.')

            appointment.status = STATUS_CANCELED
            self.db.commit()
            self.db.refresh(appointment)
            return appointment
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to cancel appointment %s', appointment_id)
            raise RepositoryError('Failed to cancel appointment.') from exc

    def _find(self, appointment_id: int, tenant_id: str, for_update: bool = False) -> Appointment | None:
        query = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.business_id == tenant_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _acquire_professional_guard(self, tenant_id: str, professional_id: str) -> None:
        if self.db.get_bind().dialect.name != 'postgresql':
            return
        self.db.execute(select(func.pg_advisory_xact_lock(professional_lock_key(tenant_id, professional_id))))

    def _query_active_intervals(
        self,
        professional_id: str,
        tenant_id: str | None,
        range_start: datetime,
        range_end: datetime,
        exclude_id: int | None = None,
    ) -> list[BookedInterval]:
        query = self.db.query(Appointment.start_time, Appointment.end_time, Appointment.status).filter(
            Appointment.professional_id == professional_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.start_time < to_storage(range_end),
            Appointment.end_time > to_storage(range_start),
        )
        if tenant_id is not None:
            query = query.filter(Appointment.business_id == tenant_id)
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)

        rows = query.order_by(Appointment.start_time.asc(), Appointment.end_time.asc()).all()

        return [
            BookedInterval(
                start=from_storage(start_time),
                end=from_storage(end_time),
                professional_id=professional_id,
                tenant_id=tenant_id,
                status=status,
            )
            for start_time, end_time, status in rows
            if start_time < end_time
        ]
