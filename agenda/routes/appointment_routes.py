from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, field_validator

from agenda.auth.dependencies import get_tenant_id, security, tenant_from_credentials
from agenda.core.errors import SchedulingError
from agenda.models.appointment import Appointment
from agenda.repositories.appointments import from_storage
from agenda.routes.common import as_http_exception, ensure_database_ready, get_availability_engine
from agenda.scheduling.engine import AvailabilityEngine, BookingRequest

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CreateAppointmentRequest(BaseModel):
    professional_id: str | None = None
    start_time: datetime | None = None
    service_id: str | None = None
    service_duration: int | None = None
    client_id: str | None = None
    business_id: str | None = None
    notes: str | None = None

    @field_validator('professional_id', 'service_id', 'client_id', 'business_id')
    @classmethod
    def normalize_identifier(cls, value: str | None) -> str | None:
        return _strip_or_none(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        normalized = _strip_or_none(value)
        if normalized is not None and len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return normalized


class RescheduleAppointmentRequest(BaseModel):
    start_time: datetime | None = None
    service_duration: int | None = None


class AppointmentResponse(BaseModel):
    id: int
    business_id: str
    professional_id: str
    service_id: str | None = None
    client_id: str | None = None
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        business_id=appointment.business_id,
        professional_id=appointment.professional_id,
        service_id=appointment.service_id,
        client_id=appointment.client_id,
        start_time=from_storage(appointment.start_time),
        end_time=from_storage(appointment.end_time),
        status=appointment.status,
        notes=appointment.notes,
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    tenant_id = data.business_id or tenant_from_credentials(credentials)

    try:
        booking_request = BookingRequest(
            professional_id=data.professional_id,
            tenant_id=tenant_id,
            start=data.start_time,
            service_duration_minutes=data.service_duration,
            service_id=data.service_id,
            client_id=data.client_id,
            notes=data.notes,
        )
        ensure_database_ready()
        appointment = engine.admit_booking(booking_request)
    except SchedulingError as exc:
        raise as_http_exception(exc, 'Failed to create appointment.') from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    tenant_id: str | None = Depends(get_tenant_id),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        ensure_database_ready()
        appointment = engine.reschedule_booking(
            appointment_id,
            tenant_id,
            data.start_time,
            data.service_duration,
        )
    except SchedulingError as exc:
        raise as_http_exception(exc, 'Failed to update appointment.') from exc

    return to_appointment_response(appointment)


@router.patch('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    tenant_id: str | None = Depends(get_tenant_id),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        ensure_database_ready()
        appointment = engine.cancel_booking(appointment_id, tenant_id)
    except SchedulingError as exc:
        raise as_http_exception(exc, 'Failed to cancel appointment.') from exc

    return to_appointment_response(appointment)
