"""Service model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String

from agenda.database import Base


class Service(Base):
    """A bookable service; only its duration matters for scheduling."""
    __tablename__ = 'services'

    id = Column(String, primary_key=True)
    business_id = Column(String, ForeignKey('businesses.id'), nullable=False, index=True)
    name = Column(String, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
