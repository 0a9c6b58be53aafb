from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
from sqlmodel import SQLModel, Field
from .base import TimestampModel, UTCDateTime


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: Optional[str] = None


class User(UserBase, TimestampModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # Invited accounts have no password until the invite link is used
    password_hash: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)
    invite_token: Optional[str] = Field(default=None, unique=True, index=True)
    invite_token_expires: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    reset_password_token: Optional[str] = Field(default=None)
    reset_password_token_expires: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None
