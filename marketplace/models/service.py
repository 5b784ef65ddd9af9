"""Service model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from marketplace.database import Base
from marketplace.models.common import new_id


class Service(Base):
    """A bookable offering; its duration drives generated slot length."""
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("provider_profiles.id"), nullable=False, index=True)
    category_id = Column(String(36), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    duration_minutes = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)  # minor currency units
    is_active = Column(Boolean, nullable=False, default=True)
