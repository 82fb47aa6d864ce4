"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from agenda.database import Base

STATUS_SCHEDULED = 'scheduled'
STATUS_COMPLETED = 'completed'
STATUS_CANCELED = 'canceled'

# Only these statuses occupy a professional's time.
ACTIVE_STATUSES = (STATUS_SCHEDULED,)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Appointment(Base):
    """A booked interval for one professional within one business.

    Start and end are stored as naive UTC.
    """
    __tablename__ = 'appointments'

    id = Column(Integer, primary_key=True)
    business_id = Column(String, nullable=False, index=True)
    professional_id = Column(String, nullable=False)
    service_id = Column(String)
    client_id = Column(String)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    notes = Column(String)
    created_at = Column(DateTime, default=_utcnow)
