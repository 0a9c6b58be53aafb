from .base import TimestampModel
from .types import AppRole, InvitationStatus
from .invitations import AdminInvitation
from .roles import UserRole
from .users import User

__all__ = [
    "TimestampModel",
    "AppRole",
    "InvitationStatus",
    "AdminInvitation",
    "UserRole",
    "User",
]
