from enum import Flag, auto
from fastapi import Depends
from sqlmodel import Session
from .database import get_session
from .exceptions import Forbidden
from ..api.deps import get_current_user
from ..models.types import AppRole
from ..models.users import User
from ..services.roles import RoleStore


class Permission(Flag):
    NONE = 0
    VIEW_INVITATIONS = auto()


ROLE_PERMISSIONS = {
    AppRole.ADMIN: Permission.VIEW_INVITATIONS,
}


def permissions_for(roles) -> Permission:
    granted = Permission.NONE
    for role in roles:
        granted |= ROLE_PERMISSIONS.get(role, Permission.NONE)
    return granted


def require_permission(permission: Permission, message: str = "Insufficient permissions"):
    async def dependency(
        current_user: User = Depends(get_current_user),
        session: Session = Depends(get_session),
    ) -> User:
        roles = RoleStore(session).roles_for(current_user.id)
        if not (permissions_for(roles) & permission):
            raise Forbidden(message)
        return current_user

    return dependency
