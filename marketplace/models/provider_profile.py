"""Provider profile model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text
from marketplace.database import Base
from marketplace.models.common import new_id, utcnow


class ProviderProfile(Base):
    """Business profile a provider user acts through."""
    __tablename__ = "provider_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    address = Column(String(500), nullable=False, default="")
    city = Column(String(100), nullable=False, default="")
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    working_hours = Column(String(500), nullable=False, default="")
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
