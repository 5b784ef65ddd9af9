"""Audit log model definitions."""

from sqlalchemy import Column, DateTime, String, Text
from marketplace.database import Base
from marketplace.models.common import new_id, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    actor_user_id = Column(String(36), nullable=False, index=True)
    action = Column(String(100), nullable=False)  # e.g. BOOKING_CREATED
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=False)
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
