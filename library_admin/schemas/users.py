from typing import Optional
from datetime import datetime
from uuid import UUID
from sqlmodel import SQLModel


class UserRead(SQLModel):
    id: UUID
    email: str
    full_name: Optional[str]
    is_verified: bool
    is_active: bool
    is_admin: bool = False
    created_at: datetime
