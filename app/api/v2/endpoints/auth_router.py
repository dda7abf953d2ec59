from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from app.api.v2.dependencies import extract_token, get_auth_service, get_current_user, http_error
from app.core.exceptions import BackendError
from app.schemas.user.auth_schema import AuthSession, AuthUser, LoginRequest, MagicLinkRequest, MessageResponse
from app.services.auth_service import AuthService

router = APIRouter()


def _set_session_cookie(response: Response, session: AuthSession) -> None:
    response.set_cookie(
        "access_token",
        session.access_token,
        httponly=True,
        samesite="lax",
        max_age=session.expires_in or None,
    )


@router.post("/login", response_model=AuthSession)
async def login(
    payload: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    try:
        session = await auth.sign_in_with_password(payload.email, payload.password)
    except BackendError as exc:
        raise http_error(exc) from exc
    _set_session_cookie(response, session)
    return session


@router.post("/magic-link", response_model=MessageResponse)
async def send_magic_link(
    payload: MagicLinkRequest,
    auth: AuthService = Depends(get_auth_service),
):
    try:
        await auth.sign_in_with_email_link(payload.email, payload.redirect_to)
    except BackendError as exc:
        raise http_error(exc) from exc
    return MessageResponse(message="Check your email for a login link.")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    token: Optional[str] = extract_token(request)
    try:
        await auth.sign_out(token)
    except BackendError as exc:
        raise http_error(exc) from exc
    finally:
        response.delete_cookie("access_token")
    return MessageResponse(message="Signed out")


@router.get("/me", response_model=AuthUser)
async def read_me(current_user: AuthUser = Depends(get_current_user)):
    return current_user
