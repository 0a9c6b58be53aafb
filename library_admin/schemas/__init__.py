from .users import UserRead
from .auth import (
    TokenResponse, LoginRequest, AcceptInviteRequest,
    ForgotPasswordRequest, ResetPassword, MessageResponse,
)
from .invitations import InviteAdminResponse, InvitationRead

__all__ = [
    "UserRead",
    "TokenResponse", "LoginRequest", "AcceptInviteRequest",
    "ForgotPasswordRequest", "ResetPassword", "MessageResponse",
    "InviteAdminResponse", "InvitationRead",
]
