from typing import Optional
from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from ..core.database import get_session
from ..models.users import User
from ..services.identity import IdentityProvider
from ..services.login_guard import LoginGuard, login_guards

# Missing credentials are reported as our own 401, not FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_identity_provider(session: Session = Depends(get_session)) -> IdentityProvider:
    return IdentityProvider(session)


async def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> User:
    return identity.get_current_user(token)


def get_login_guard(request: Request) -> LoginGuard:
    client = request.client.host if request.client else "anonymous"
    return login_guards.get(client)
