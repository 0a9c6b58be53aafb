from typing import List
from uuid import UUID
from sqlmodel import Session, select
from ..models.roles import UserRole
from ..models.types import AppRole


class RoleStore:
    def __init__(self, session: Session):
        self.session = session

    def has_role(self, user_id: UUID, role: AppRole) -> bool:
        return self.session.get(UserRole, (user_id, role)) is not None

    def roles_for(self, user_id: UUID) -> List[AppRole]:
        return list(self.session.exec(
            select(UserRole.role).where(UserRole.user_id == user_id)
        ).all())

    def grant_role(self, user_id: UUID, role: AppRole) -> UserRole:
        """Insert a grant and commit. Raises on a database error, after rolling back."""
        grant = UserRole(user_id=user_id, role=role)
        self.session.add(grant)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(grant)
        return grant
