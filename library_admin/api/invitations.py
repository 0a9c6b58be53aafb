from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Response
from sqlmodel import Session

from ..core.database import get_session
from ..core.permission import Permission, require_permission
from ..models.users import User
from ..schemas.invitations import InviteAdminResponse, InvitationRead
from ..services.invitation_service import InvitationService
from .deps import get_current_user


router = APIRouter()


async def read_invitee_email(request: Request):
    """Return the raw ``email`` field, or None when the body is unusable.

    Validation is left to the service so that permission errors come first.
    """
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return body.get("email")


@router.options("/invite-admin")
async def invite_admin_preflight():
    return Response(status_code=200)


@router.post("/invite-admin", response_model=InviteAdminResponse)
def invite_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
    email: Optional[str] = Depends(read_invitee_email),
    session: Session = Depends(get_session),
):
    """
    Invite a new library admin.

    The caller must be authenticated and hold the admin role. A new account
    is created for the invitee, granted the admin role, and sent a welcome
    email pointing at the login page of the requesting origin.
    """
    result = InvitationService(session).invite_admin(
        current_user,
        email,
        origin=request.headers.get("origin"),
    )
    return InviteAdminResponse(
        message=result.message,
        user_id=result.user_id,
        warnings=result.warnings,
    )


@router.get("/invitations", response_model=List[InvitationRead])
async def list_invitations(
    current_user: User = Depends(
        require_permission(Permission.VIEW_INVITATIONS, "Only admins can view invitations")
    ),
    session: Session = Depends(get_session),
):
    invitations = InvitationService(session).list_invitations()
    return [
        InvitationRead(
            id=invitation.id,
            email=invitation.email,
            invited_by=invitation.invited_by,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            accepted_at=invitation.accepted_at,
            status=invitation.status,
        )
        for invitation in invitations
    ]
