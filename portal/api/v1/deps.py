"""
FastAPI dependencies — clock, database session, repositories and auth guards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.errors import SessionInvalid
from portal.db.session import async_session_factory
from portal.models.user import ROLE_ADMIN, User
from portal.repositories.attendance import AttendanceRepository
from portal.repositories.users import UserRepository
from portal.services.attendance import AttendanceEngine
from portal.services.policy import AttendancePolicy
from portal.services.sessions import SessionManager

# We use auto_error=False so we can manually check for the cookie if header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

_policy = AttendancePolicy.from_settings(settings)


# ── Clock & policy ──────────────────────────────────────────────────
def get_now() -> datetime:
    """Server time for every transition; overridden in tests."""
    return datetime.now(timezone.utc)


def get_policy() -> AttendancePolicy:
    return _policy


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_user_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_session_manager(
    users: UserRepository = Depends(get_user_repository),
) -> SessionManager:
    return SessionManager(users)


def get_attendance_engine(
    db: AsyncSession = Depends(get_db),
    policy: AttendancePolicy = Depends(get_policy),
) -> AttendanceEngine:
    return AttendanceEngine(AttendanceRepository(db), policy)


def extract_token(header_token: str | None, cookie_token: str | None) -> str | None:
    """Priority: Header > Cookie (cookie value may carry a ``Bearer `` prefix)."""
    if header_token:
        return header_token
    if cookie_token:
        if cookie_token.startswith("Bearer "):
            return cookie_token.split(" ", 1)[1]
        return cookie_token
    return None


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # Read from HttpOnly Cookie
    sessions: SessionManager = Depends(get_session_manager),
    now: datetime = Depends(get_now),
) -> User:
    """Decode JWT from Header OR Cookie, re-fetch the user behind it."""
    user = await sessions.resolve_current_user(extract_token(token, access_token), now)
    if user is None:
        # Expired, malformed, unknown or deactivated: all look the same.
        raise SessionInvalid()
    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """Only allow admin role to proceed."""
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user
