from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlmodel import SQLModel
from ..models.types import InvitationStatus


class InviteAdminResponse(SQLModel):
    success: bool = True
    message: str
    user_id: UUID
    warnings: List[str] = []


class InvitationRead(SQLModel):
    id: UUID
    email: str
    invited_by: UUID
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime]
    status: InvitationStatus
