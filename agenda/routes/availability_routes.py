from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from agenda.auth.dependencies import get_tenant_id
from agenda.core import config
from agenda.core.errors import InvalidRequest, SchedulingError
from agenda.routes.common import as_http_exception, ensure_database_ready, get_availability_engine
from agenda.scheduling.engine import AvailabilityEngine, AvailabilityRequest

router = APIRouter(tags=['availability'])


class AvailabilityResponse(BaseModel):
    available_slots: list[str]


def parse_date(value: str | None) -> date | None:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidRequest('date must use the YYYY-MM-DD format.') from exc


@router.get('', response_model=AvailabilityResponse)
def get_availability(
    professional_id: str | None = Query(default=None),
    date_value: str | None = Query(default=None, alias='date'),
    service_duration: int = Query(default=config.DEFAULT_SERVICE_DURATION_MINUTES),
    tenant_id: str | None = Depends(get_tenant_id),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        availability_request = AvailabilityRequest(
            professional_id=(professional_id or '').strip() or None,
            date=parse_date(date_value),
            service_duration_minutes=service_duration,
            tenant_id=tenant_id,
        )
        ensure_database_ready()
        slots = engine.compute_available_slots(availability_request)
    except SchedulingError as exc:
        raise as_http_exception(exc, 'Failed to fetch availability.') from exc

    return AvailabilityResponse(available_slots=slots)
