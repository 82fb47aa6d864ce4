"""
Availability and admission control.

The read path is advisory: it reports slots that were free when the store was
read and reserves nothing. The write path re-checks inside one store
transaction, so of several concurrent attempts on overlapping intervals for
the same professional exactly one is admitted.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from agenda.core import config
from agenda.core.errors import InvalidRequest, SlotUnavailable, TenantNotFound
from agenda.models.appointment import Appointment
from agenda.repositories.appointments import AppointmentRepository, ProposedBooking
from agenda.repositories.businesses import BusinessRepository
from agenda.scheduling.conflicts import has_conflict
from agenda.scheduling.slots import CandidateSlot, CandidateSlots
from agenda.scheduling.time_window import (
    TimeWindow,
    format_slot_time,
    local_date,
    local_day_bounds,
    resolve_time_window,
    to_utc_instant,
)

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = 'This time is already booked for this professional.'


@dataclass(frozen=True)
class AvailabilityRequest:
    professional_id: str | None
    date: date | None
    service_duration_minutes: int = config.DEFAULT_SERVICE_DURATION_MINUTES
    tenant_id: str | None = None


@dataclass(frozen=True)
class BookingRequest:
    professional_id: str | None
    tenant_id: str | None
    start: datetime | None
    service_duration_minutes: int | None = None
    service_id: str | None = None
    client_id: str | None = None
    notes: str | None = None


def _validate_duration(duration_minutes: int | None) -> None:
    if duration_minutes is not None and duration_minutes <= 0:
        raise InvalidRequest('service_duration must be a positive number of minutes.')


def _validate_start(start: datetime) -> None:
    if start.second or start.microsecond:
        raise InvalidRequest('start_time must fall on a whole minute.')


class AvailabilityEngine:
    def __init__(self, appointments: AppointmentRepository, businesses: BusinessRepository):
        self.appointments = appointments
        self.businesses = businesses

    def compute_available_slots(self, request: AvailabilityRequest) -> list[str]:
        """
        List free start times for a professional on a date.

        Returns:
            Start times as HH:MM in the tenant's timezone, ascending

        Raises:
            InvalidRequest: Missing professional/date or non-positive duration
            TenantNotFound: Unknown tenant id
            ConfigurationError: Invalid operating hours for the day
            RepositoryError: Store failure
        """
        window, free_slots = self.find_free_slots(request)
        return [format_slot_time(slot.start, window.timezone) for slot in free_slots]

    def find_free_slots(self, request: AvailabilityRequest) -> tuple[TimeWindow, list[CandidateSlot]]:
        if not request.professional_id or request.date is None:
            raise InvalidRequest('professional_id and date are required.')
        if request.service_duration_minutes is None:
            raise InvalidRequest('service_duration is required.')
        _validate_duration(request.service_duration_minutes)

        window = resolve_time_window(self.businesses, request.tenant_id, request.date)
        if window.length() < timedelta(minutes=request.service_duration_minutes):
            return window, []

        day_start, day_end = local_day_bounds(window.date, window.timezone)
        booked = self.appointments.fetch_active_intervals(
            request.professional_id,
            request.tenant_id,
            day_start,
            day_end,
        )

        free_slots = [
            slot
            for slot in CandidateSlots(window, request.service_duration_minutes)
            if not has_conflict(slot.start, slot.end, booked)
        ]
        return window, free_slots

    def admit_booking(self, request: BookingRequest) -> Appointment:
        """
        Durably accept a booking unless it overlaps an active one.

        Raises:
            InvalidRequest: Bad input or an interval outside business hours
            TenantNotFound: Missing or unknown tenant
            SlotUnavailable: The interval is no longer free
            RepositoryError: Store failure; nothing was written
        """
        if not request.professional_id or request.start is None:
            raise InvalidRequest('professional_id and start_time are required.')
        _validate_start(request.start)
        _validate_duration(request.service_duration_minutes)
        if not request.tenant_id:
            raise TenantNotFound('Business not found.')

        duration_minutes = request.service_duration_minutes
        if duration_minutes is None:
            if not request.service_id:
                raise InvalidRequest('service_id or service_duration is required.')
            duration_minutes = self.businesses.get_service_duration(request.tenant_id, request.service_id)

        start, end, window = self._place_interval(request.tenant_id, request.start, duration_minutes)
        day_start, day_end = local_day_bounds(window.date, window.timezone)

        appointment = self.appointments.insert_if_free(
            ProposedBooking(
                tenant_id=request.tenant_id,
                professional_id=request.professional_id,
                start=start,
                end=end,
                service_id=request.service_id,
                client_id=request.client_id,
                notes=request.notes,
            ),
            day_start,
            day_end,
        )
        if appointment is None:
            logger.info(
                'Booking rejected for professional %s at %s: slot taken',
                request.professional_id,
                start.isoformat(),
            )
            raise SlotUnavailable(SLOT_TAKEN_MESSAGE)

        logger.info('Booking %s admitted for professional %s', appointment.id, request.professional_id)
        return appointment

    def reschedule_booking(
        self,
        appointment_id: int,
        tenant_id: str | None,
        start: datetime | None,
        service_duration_minutes: int | None = None,
    ) -> Appointment:
        if start is None:
            raise InvalidRequest('start_time is required.')
        _validate_start(start)
        _validate_duration(service_duration_minutes)
        if not tenant_id:
            raise TenantNotFound('Business not found.')

        if service_duration_minutes is None:
            current = self.appointments.get(appointment_id, tenant_id)
            service_duration_minutes = int((current.end_time - current.start_time).total_seconds() // 60)

        new_start, new_end, window = self._place_interval(tenant_id, start, service_duration_minutes)
        day_start, day_end = local_day_bounds(window.date, window.timezone)

        appointment = self.appointments.reschedule_if_free(
            appointment_id, tenant_id, new_start, new_end, day_start, day_end
        )
        if appointment is None:
            logger.info('Reschedule of booking %s rejected: slot taken', appointment_id)
            raise SlotUnavailable(SLOT_TAKEN_MESSAGE)

        return appointment

    def cancel_booking(self, appointment_id: int, tenant_id: str | None) -> Appointment:
        if not tenant_id:
            raise TenantNotFound('Business not found.')
        return self.appointments.cancel(appointment_id, tenant_id)

    def _place_interval(
        self,
        tenant_id: str,
        start: datetime,
        duration_minutes: int,
    ) -> tuple[datetime, datetime, TimeWindow]:
        """Anchor a requested start to the tenant's timezone and check it fits the day's window."""
        zone_name = self.businesses.get_business_timezone(tenant_id) or config.DEFAULT_TIMEZONE
        start_instant = to_utc_instant(start, zone_name)
        end_instant = start_instant + timedelta(minutes=duration_minutes)

        window = resolve_time_window(self.businesses, tenant_id, local_date(start_instant, zone_name))
        if not window.is_open:
            raise InvalidRequest('The business is closed on this day.')
        if not window.contains(start_instant, end_instant):
            raise InvalidRequest('Appointment is outside business hours.')

        return start_instant, end_instant, window
