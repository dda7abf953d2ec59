from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class AuthSession(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: AuthUser


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class MagicLinkRequest(BaseModel):
    email: str = ""
    redirect_to: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
