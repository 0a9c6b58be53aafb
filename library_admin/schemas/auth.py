from typing import Optional
from pydantic import EmailStr, Field
from sqlmodel import SQLModel


class TokenResponse(SQLModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(SQLModel):
    email: EmailStr
    password: str = Field(min_length=6)


class AcceptInviteRequest(SQLModel):
    token: str
    password: str = Field(min_length=6)
    full_name: Optional[str] = None


class ForgotPasswordRequest(SQLModel):
    email: EmailStr


class ResetPassword(SQLModel):
    email: EmailStr
    code: str
    new_password: str = Field(min_length=6)
    confirm_password: str


class MessageResponse(SQLModel):
    message: str
