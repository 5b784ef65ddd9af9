"""Availability slot model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String
from marketplace.database import Base
from marketplace.models.common import new_id


class AvailabilitySlot(Base):
    """A provider time slot. ``is_booked`` is only changed through SlotStore."""
    __tablename__ = "availability_slots"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("provider_profiles.id"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    timezone = Column(String(50), nullable=False, default="UTC")
    is_booked = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_slot_start_before_end"),
    )
