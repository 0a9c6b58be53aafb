"""Identity provider: owns user accounts, credentials and session tokens.

Accounts created through an invitation have no password. The invitee receives
a single-use link carrying ``invite_token``; using it sets the password and
verifies the account.
"""

import logging
from datetime import timedelta
from typing import List, Optional
from urllib.parse import urlencode
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from ..core.config import get_settings
from ..core.exceptions import IdentityError, InvalidCredentials, Unauthorized, InvalidInput
from ..core.security import (
    create_access_token,
    decode_access_token,
    generate_token,
    get_password_hash,
    token_ttl_seconds,
    verify_password,
)
from ..models.base import as_utc, utcnow
from ..models.users import User
from .email_services import email_service
from .redis_service import redis_service

settings = get_settings()
logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityProvider:
    def __init__(self, session: Session):
        self.session = session

    def get_current_user(self, token: Optional[str]) -> User:
        if not token or redis_service.is_blacklisted(token):
            raise Unauthorized()

        payload = decode_access_token(token)
        if payload is None:
            raise Unauthorized()

        try:
            user = self.session.get(User, UUID(payload["sub"]))
        except ValueError:
            raise Unauthorized()
        if not user or not user.is_active:
            raise Unauthorized()
        return user

    def list_users(self) -> List[User]:
        return list(self.session.exec(select(User)).all())

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(
            select(User).where(func.lower(User.email) == normalize_email(email))
        ).first()

    def create_invited_user(self, email: str, redirect_url: str) -> User:
        """Create a password-less account and email it a set-password link.

        Nothing is persisted if the link cannot be delivered.
        """
        email = normalize_email(email)
        if self.find_by_email(email):
            raise IdentityError("A user with this email address has already been registered")

        invite_token = generate_token()
        user = User(
            email=email,
            invite_token=invite_token,
            invite_token_expires=utcnow() + timedelta(hours=settings.INVITATION_EXPIRE_HOURS),
        )
        self.session.add(user)
        try:
            self.session.flush()
            link = f"{redirect_url}?{urlencode({'invite_token': invite_token})}"
            email_service.send_set_password_email(email, link)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            raise IdentityError(str(e) or "Failed to create user") from e

        self.session.refresh(user)
        logger.info("Invited user created: %s", email)
        return user

    def accept_invite(self, invite_token: str, password: str, full_name: Optional[str] = None) -> User:
        user = self.session.exec(
            select(User).where(User.invite_token == invite_token)
        ).first()
        if not user or not user.invite_token_expires or utcnow() > as_utc(user.invite_token_expires):
            raise InvalidInput("Invalid or expired invitation link")

        user.password_hash = get_password_hash(password)
        user.is_verified = True
        user.invite_token = None
        user.invite_token_expires = None
        if full_name:
            user.full_name = full_name

        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def sign_in_with_password(self, email: str, password: str) -> str:
        user = self.find_by_email(email)
        if (
            not user
            or not user.is_active
            or not user.has_password
            or not verify_password(password, user.password_hash)
        ):
            raise InvalidCredentials("Invalid login credentials")
        return create_access_token({"sub": str(user.id)})

    def sign_out(self, token: str) -> None:
        payload = decode_access_token(token)
        if payload is None:
            raise Unauthorized()
        redis_service.add_to_blacklist(token, token_ttl_seconds(payload))

    def request_password_reset(self, email: str) -> Optional[str]:
        """Store a fresh reset code for the account and return it, or None if there is no such account."""
        user = self.find_by_email(email)
        if not user or not user.has_password:
            return None

        reset_code = email_service.generate_verification_code()
        user.reset_password_token = reset_code
        user.reset_password_token_expires = utcnow() + timedelta(
            hours=settings.RESET_PASSWORD_EXPIRE_HOURS
        )
        self.session.add(user)
        self.session.commit()
        return reset_code

    def reset_password(self, email: str, code: str, new_password: str) -> None:
        user = self.find_by_email(email)
        if (
            not user
            or not user.reset_password_token
            or not user.reset_password_token_expires
            or utcnow() > as_utc(user.reset_password_token_expires)
            or user.reset_password_token != code
        ):
            raise InvalidInput("Invalid or expired reset code")

        user.password_hash = get_password_hash(new_password)
        user.reset_password_token = None
        user.reset_password_token_expires = None
        self.session.add(user)
        self.session.commit()
