from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
from sqlalchemy import Index, text
from sqlmodel import Field
from .base import TimestampModel, UTCDateTime, as_utc, utcnow
from .types import InvitationStatus


class AdminInvitation(TimestampModel, table=True):
    __tablename__ = "invitations"
    __table_args__ = (
        # At most one unaccepted invitation per email
        Index(
            "uq_invitations_pending_email",
            "email",
            unique=True,
            sqlite_where=text("accepted_at IS NULL"),
            postgresql_where=text("accepted_at IS NULL"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(index=True)
    invited_by: UUID = Field(foreign_key="user.id")
    expires_at: datetime = Field(sa_type=UTCDateTime)
    accepted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(now or utcnow()) >= as_utc(self.expires_at)

    @property
    def status(self) -> InvitationStatus:
        if self.accepted_at is not None:
            return InvitationStatus.ACCEPTED
        if self.is_expired():
            return InvitationStatus.EXPIRED
        return InvitationStatus.PENDING
