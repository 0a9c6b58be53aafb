from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..core.database import get_session
from ..models.types import AppRole
from ..models.users import User
from ..schemas.users import UserRead
from ..services.roles import RoleStore
from .deps import get_current_user


router = APIRouter()


@router.get("/me", response_model=UserRead)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return UserRead(
        id=current_user.id,
        email=current_user.email,
        full_name=current_user.full_name,
        is_verified=current_user.is_verified,
        is_active=current_user.is_active,
        is_admin=RoleStore(session).has_role(current_user.id, AppRole.ADMIN),
        created_at=current_user.created_at,
    )
