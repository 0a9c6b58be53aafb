import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from email_validator import validate_email, EmailNotValidError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ..core.config import get_settings
from ..core.exceptions import Conflict, Forbidden, IdentityError, InvalidInput, ProvisioningError
from ..models.base import utcnow
from ..models.invitations import AdminInvitation
from ..models.types import AppRole
from ..models.users import User
from .email_services import email_service
from .identity import IdentityProvider, normalize_email
from .roles import RoleStore

settings = get_settings()
logger = logging.getLogger(__name__)

INVITE_SUCCESS_MESSAGE = "Invitation sent successfully"


@dataclass
class InviteResult:
    user_id: UUID
    invitation_id: UUID
    message: str = INVITE_SUCCESS_MESSAGE
    warnings: List[str] = field(default_factory=list)


def build_login_url(origin: Optional[str]) -> str:
    base = (origin or settings.SITE_URL).rstrip("/")
    return f"{base}/login"


def parse_invitee_email(email) -> str:
    if email is None or (isinstance(email, str) and not email.strip()):
        raise InvalidInput("Email is required")
    if not isinstance(email, str):
        raise InvalidInput("A valid email address is required")
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        raise InvalidInput("A valid email address is required")
    return normalize_email(result.normalized)


class InvitationLedger:
    """Record set of admin invitations and their expiry."""

    def __init__(self, session: Session):
        self.session = session

    def find_active_invitation(self, email: str, now: Optional[datetime] = None) -> Optional[AdminInvitation]:
        now = now or utcnow()
        return self.session.exec(
            select(AdminInvitation).where(
                AdminInvitation.email == email,
                AdminInvitation.accepted_at.is_(None),
                AdminInvitation.expires_at > now,
            )
        ).first()

    def purge_expired(self, email: str, now: Optional[datetime] = None) -> int:
        """Delete expired, never-accepted invitations for the email."""
        now = now or utcnow()
        stale = self.session.exec(
            select(AdminInvitation).where(
                AdminInvitation.email == email,
                AdminInvitation.accepted_at.is_(None),
                AdminInvitation.expires_at <= now,
            )
        ).all()
        for invitation in stale:
            self.session.delete(invitation)
        if stale:
            self.session.commit()
        return len(stale)

    def insert_invitation(self, invitation: AdminInvitation) -> AdminInvitation:
        self.session.add(invitation)
        self.session.commit()
        self.session.refresh(invitation)
        return invitation

    def update_invitation(self, invitation_id: UUID, **patch) -> AdminInvitation:
        invitation = self.session.get(AdminInvitation, invitation_id)
        if invitation is None:
            raise LookupError(f"Invitation {invitation_id} not found")
        for key, value in patch.items():
            setattr(invitation, key, value)
        self.session.add(invitation)
        self.session.commit()
        self.session.refresh(invitation)
        return invitation

    def delete_invitation(self, invitation_id: UUID) -> None:
        invitation = self.session.get(AdminInvitation, invitation_id)
        if invitation is not None:
            self.session.delete(invitation)
            self.session.commit()

    def list_invitations(self) -> List[AdminInvitation]:
        return list(self.session.exec(
            select(AdminInvitation).order_by(AdminInvitation.created_at.desc())
        ).all())


class InvitationService:
    def __init__(self, session: Session):
        self.session = session
        self.identity = IdentityProvider(session)
        self.roles = RoleStore(session)
        self.ledger = InvitationLedger(session)

    def invite_admin(self, caller: User, email: Optional[str], origin: Optional[str] = None) -> InviteResult:
        """Invite ``email`` as a library admin on behalf of ``caller``.

        Steps run in order and stop at the first terminal error. Once the
        account exists, later failures (role grant, ledger update, courtesy
        email) are logged and returned as warnings instead of raised.

        Raises:
            Forbidden: caller does not hold the admin role.
            InvalidInput: email is missing or malformed.
            Conflict: an active invitation or an account already exists.
            ProvisioningError: the identity provider could not create the
                account. The invitation row is removed first.
        """
        if not self.roles.has_role(caller.id, AppRole.ADMIN):
            raise Forbidden("Only admins can invite users")

        email = parse_invitee_email(email)

        now = utcnow()
        self.ledger.purge_expired(email, now)
        if self.ledger.find_active_invitation(email, now):
            raise Conflict("An active invitation already exists for this email")

        if self.identity.find_by_email(email):
            raise Conflict("A user with this email already exists")

        try:
            invitation = self.ledger.insert_invitation(AdminInvitation(
                email=email,
                invited_by=caller.id,
                created_at=now,
                expires_at=now + timedelta(hours=settings.INVITATION_EXPIRE_HOURS),
            ))
        except IntegrityError:
            # Lost a race with a concurrent invite for the same email
            self.session.rollback()
            raise Conflict("An active invitation already exists for this email")

        login_url = build_login_url(origin)
        try:
            user = self.identity.create_invited_user(email, login_url)
        except IdentityError as e:
            logger.error("Account provisioning failed for %s: %s", email, e)
            self.ledger.delete_invitation(invitation.id)
            raise ProvisioningError(str(e))

        result = InviteResult(user_id=user.id, invitation_id=invitation.id)

        try:
            self.roles.grant_role(user.id, AppRole.ADMIN)
        except SQLAlchemyError as e:
            logger.warning("Failed to assign admin role to %s (%s): %s", email, user.id, e)
            result.warnings.append("Failed to assign admin role")

        try:
            self.ledger.update_invitation(invitation.id, accepted_at=utcnow())
        except (SQLAlchemyError, LookupError) as e:
            self.session.rollback()
            logger.warning("Failed to mark invitation %s accepted: %s", invitation.id, e)
            result.warnings.append("Failed to update invitation record")

        try:
            email_service.send_admin_invitation_email(email, login_url)
        except Exception as e:
            logger.warning("Invitation email to %s could not be sent: %s", email, e)
            result.warnings.append("Invitation email could not be sent")

        logger.info("Admin invitation for %s created by %s", email, caller.id)
        return result

    def list_invitations(self) -> List[AdminInvitation]:
        return self.ledger.list_invitations()
