from typing import Optional
from fastapi import APIRouter, Depends, BackgroundTasks, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..core.exceptions import InvalidInput, Unauthorized
from ..schemas.auth import (
    TokenResponse,
    LoginRequest,
    AcceptInviteRequest,
    ForgotPasswordRequest,
    ResetPassword,
    MessageResponse,
)
from ..services.email_services import email_service
from ..services.identity import IdentityProvider
from ..services.login_guard import LoginGuard
from .deps import get_bearer_token, get_identity_provider, get_login_guard


router = APIRouter()


async def read_login_request(
    request: Request,
    guard: LoginGuard = Depends(get_login_guard),
) -> LoginRequest:
    """Parse the credentials, refusing locked-out clients before any validation."""
    guard.ensure_unlocked()
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Invalid request body")
    try:
        return LoginRequest.model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


@router.post("/login", response_model=TokenResponse)
def login(
    login_data: LoginRequest = Depends(read_login_request),
    identity: IdentityProvider = Depends(get_identity_provider),
    guard: LoginGuard = Depends(get_login_guard),
):
    access_token = guard.submit(
        lambda: identity.sign_in_with_password(login_data.email, login_data.password)
    )
    return TokenResponse(access_token=access_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: Optional[str] = Depends(get_bearer_token),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    if not token:
        raise Unauthorized()
    identity.sign_out(token)
    return MessageResponse(message="Signed out")


@router.post("/accept-invite", response_model=MessageResponse)
def accept_invite(
    body: AcceptInviteRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    identity.accept_invite(body.token, body.password, body.full_name)
    return MessageResponse(message="Your account is ready. You can now sign in.")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    background_task: BackgroundTasks,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    reset_code = identity.request_password_reset(body.email)
    if reset_code:
        background_task.add_task(
            email_service.send_reset_password_email, body.email, reset_code
        )
    return MessageResponse(message="If the account exists, you'll receive a reset code")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    reset_body: ResetPassword,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    if reset_body.new_password != reset_body.confirm_password:
        raise InvalidInput("Passwords must match")
    identity.reset_password(reset_body.email, reset_body.code, reset_body.new_password)
    return MessageResponse(message="Password updated successfully")
