"""
Auth endpoints — sign-in (OAuth2 password flow), sign-out and current user.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from slowapi import Limiter
from slowapi.util import get_remote_address

from portal.api.v1.deps import (get_current_user, get_now,
                                get_session_manager, get_user_repository)
from portal.core.config import settings
from portal.models.user import User
from portal.repositories.users import UserRepository
from portal.schemas.attendance import LogoutResponse
from portal.schemas.token import SignInResponse
from portal.schemas.user import UserRead
from portal.services.credentials import CredentialVerifier
from portal.services.sessions import SessionManager

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=SignInResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    users: UserRepository = Depends(get_user_repository),
    sessions: SessionManager = Depends(get_session_manager),
    now: datetime = Depends(get_now),
) -> SignInResponse:
    """Verify credentials, issue an access token and set it as an HttpOnly cookie."""
    subject = await CredentialVerifier(users).verify(form_data.username, form_data.password)
    issued = sessions.issue(subject, now)
    user = await users.get_by_id(subject.id)

    response.set_cookie(
        key="access_token",
        value=f"Bearer {issued.access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,  # Set to True in HTTPS production
        samesite="lax",
        max_age=int(sessions.ttl.total_seconds()),
    )

    return SignInResponse(
        access_token=issued.access_token,
        issued_at=issued.issued_at,
        expires_at=issued.expires_at,
        subject=UserRead.model_validate(user),
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
) -> LogoutResponse:
    """Clear the auth cookie. Always succeeds, even without a session."""
    sessions.revoke()
    response.delete_cookie("access_token")
    return LogoutResponse(message="Logged out")


@router.get("/me", response_model=UserRead)
async def read_current_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Return profile of the currently authenticated user."""
    return current_user
