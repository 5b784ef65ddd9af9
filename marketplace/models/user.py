"""User model definitions."""

import enum

from sqlalchemy import Column, DateTime, String
from marketplace.database import Base
from marketplace.models.common import new_id, utcnow


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    PROVIDER = "PROVIDER"
    CLIENT = "CLIENT"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False, default="")
    last_name = Column(String(50), nullable=False, default="")
    role = Column(String(20), nullable=False, default=Role.CLIENT.value)  # ADMIN/PROVIDER/CLIENT
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
