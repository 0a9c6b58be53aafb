from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values, convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp column that always round-trips as UTC.

    SQLite drops the offset on storage, so values read back are re-tagged.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self):
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class TimestampModel(SQLModel):
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(
        default=None, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utcnow}
    )
