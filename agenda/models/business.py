"""Business (tenant) model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Time

from agenda.core import config
from agenda.database import Base


class Business(Base):
    """A tenant scope for professionals, services and appointments."""
    __tablename__ = 'businesses'

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default=config.DEFAULT_TIMEZONE)


class BusinessHours(Base):
    """Opening hours of a business for one weekday (0 = Sunday)."""
    __tablename__ = 'business_hours'

    id = Column(Integer, primary_key=True)
    business_id = Column(String, ForeignKey('businesses.id'), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)
