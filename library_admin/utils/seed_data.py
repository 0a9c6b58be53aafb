# library_admin/utils/seed_data.py
import logging
import sys

from sqlmodel import Session
from library_admin.core.database import engine, create_db_and_tables
from library_admin.core.logging_setup import setup_logging
from library_admin.core.security import get_password_hash
from library_admin.models.types import AppRole
from library_admin.models.users import User
from library_admin.services.identity import IdentityProvider, normalize_email
from library_admin.services.roles import RoleStore

logger = logging.getLogger(__name__)


def create_admin(session: Session, email: str, password: str, full_name: str = None) -> User:
    """Create a verified admin account, or grant admin to an existing one.

    Invitations can only be sent by an admin, so the first one has to be
    created out of band.
    """
    roles = RoleStore(session)
    user = IdentityProvider(session).find_by_email(email)
    if user is None:
        user = User(
            email=normalize_email(email),
            password_hash=get_password_hash(password),
            full_name=full_name,
            is_verified=True,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info("Created user %s", user.email)

    if not roles.has_role(user.id, AppRole.ADMIN):
        roles.grant_role(user.id, AppRole.ADMIN)
        logger.info("Granted admin role to %s", user.email)
    return user


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 2:
        print("usage: python -m library_admin.utils.seed_data <email> <password> [full name]")
        return 1

    setup_logging()
    create_db_and_tables()
    with Session(engine) as session:
        user = create_admin(session, argv[0], argv[1], " ".join(argv[2:]) or None)
        print(f"Admin ready: {user.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
