"""Booking model definitions."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from marketplace.database import Base
from marketplace.models.common import new_id, utcnow


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class Booking(Base):
    """A client's claim on one provider slot. Never deleted, only transitioned."""
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    client_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    provider_id = Column(String(36), ForeignKey("provider_profiles.id"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    slot_id = Column(String(36), ForeignKey("availability_slots.id"), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
