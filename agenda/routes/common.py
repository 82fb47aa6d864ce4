from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core import config
from agenda.core.errors import RepositoryError, SchedulingError
from agenda.database import ensure_appointment_schema, get_db
from agenda.repositories.appointments import AppointmentRepository
from agenda.repositories.businesses import BusinessRepository
from agenda.scheduling.engine import AvailabilityEngine


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_availability_engine(db: Session = Depends(get_db)) -> AvailabilityEngine:
    return AvailabilityEngine(
        appointments=AppointmentRepository(db, timeout_seconds=config.REPOSITORY_TIMEOUT_SECONDS),
        businesses=BusinessRepository(db, timeout_seconds=config.REPOSITORY_TIMEOUT_SECONDS),
    )


def as_http_exception(exc: SchedulingError, failure_detail: str | None = None) -> HTTPException:
    if isinstance(exc, RepositoryError):
        return HTTPException(status_code=exc.status_code, detail=failure_detail or exc.message)
    return HTTPException(status_code=exc.status_code, detail=exc.message)
