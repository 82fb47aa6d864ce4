import os
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from agenda.database import Base, configure_sqlite_engine  # noqa: E402
from agenda.models.appointment import Appointment  # noqa: E402
from agenda.models.business import Business, BusinessHours  # noqa: E402
from agenda.models.service import Service  # noqa: E402
from agenda.repositories.appointments import AppointmentRepository  # noqa: E402
from agenda.repositories.businesses import BusinessRepository  # noqa: E402
from agenda.scheduling.engine import AvailabilityEngine  # noqa: E402

TENANT_ID = 'biz-1'
OTHER_TENANT_ID = 'biz-2'
PROFESSIONAL_ID = 'pro-1'
TENANT_TIMEZONE = 'America/Sao_Paulo'
MONDAY = date(2026, 1, 5)

TABLES = [Business.__table__, BusinessHours.__table__, Service.__table__, Appointment.__table__]


def local_time(hour: int, minute: int = 0, day: date = MONDAY, zone_name: str = TENANT_TIMEZONE) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=ZoneInfo(zone_name))


def add_appointment(
    db,
    start: datetime,
    end: datetime,
    status: str = 'scheduled',
    professional_id: str = PROFESSIONAL_ID,
    business_id: str = TENANT_ID,
) -> Appointment:
    appointment = Appointment(
        business_id=business_id,
        professional_id=professional_id,
        start_time=start.astimezone(timezone.utc).replace(tzinfo=None),
        end_time=end.astimezone(timezone.utc).replace(tzinfo=None),
        status=status,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def seed_tenants(db) -> None:
    db.add(Business(id=TENANT_ID, name='Studio Um', timezone=TENANT_TIMEZONE))
    db.add(Business(id=OTHER_TENANT_ID, name='Studio Dois', timezone=TENANT_TIMEZONE))
    db.add(Service(id='svc-cut', business_id=TENANT_ID, name='Corte', duration=45))
    db.commit()


@pytest.fixture
def scheduling_db():
    engine = configure_sqlite_engine(create_engine('sqlite:///:memory:'))
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        seed_tenants(db)
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def availability_engine(scheduling_db):
    return AvailabilityEngine(
        appointments=AppointmentRepository(scheduling_db),
        businesses=BusinessRepository(scheduling_db),
    )
