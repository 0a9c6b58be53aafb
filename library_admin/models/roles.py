from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field
from .base import UTCDateTime, utcnow
from .types import AppRole


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"

    # One grant per (user, role) pair
    user_id: UUID = Field(foreign_key="user.id", primary_key=True)
    role: AppRole = Field(default=AppRole.ADMIN, primary_key=True)
    granted_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
