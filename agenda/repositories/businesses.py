import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.errors import RepositoryError, ServiceNotFound, TenantNotFound
from agenda.database import apply_statement_timeout
from agenda.models.business import Business, BusinessHours
from agenda.models.service import Service
from agenda.scheduling.time_window import OperatingHours

logger = logging.getLogger(__name__)


class BusinessRepository:
    """Tenant lookups and the per-weekday operating hours source."""

    def __init__(self, db: Session, timeout_seconds: float | None = None):
        self.db = db
        self.timeout_seconds = timeout_seconds

    def get_business_timezone(self, tenant_id: str) -> str:
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            business = self.db.get(Business, tenant_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to load business %s', tenant_id)
            raise RepositoryError('Failed to load business.') from exc

        if business is None:
            raise TenantNotFound('Business not found.')

        return business.timezone

    def get_operating_hours(self, tenant_id: str, weekday: int) -> OperatingHours | None:
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            hours = self.db.query(BusinessHours).filter(
                BusinessHours.business_id == tenant_id,
                BusinessHours.day_of_week == weekday,
            ).first()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to load business hours for %s', tenant_id)
            raise RepositoryError('Failed to load business hours.') from exc

        if hours is None:
            return None
        if not hours.is_open:
            return OperatingHours.closed()

        return OperatingHours(open_time=hours.open_time, close_time=hours.close_time)

    def get_service_duration(self, tenant_id: str, service_id: str) -> int:
        try:
            apply_statement_timeout(self.db, self.timeout_seconds)
            service = self.db.query(Service).filter(
                Service.id == service_id,
                Service.business_id == tenant_id,
            ).first()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to load service %s', service_id)
            raise RepositoryError('Failed to load service.') from exc

        if service is None:
            raise ServiceNotFound('Service not found.')

        return service.duration
