"""Pydantic schemas for signed session tokens."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from portal.schemas.user import UserRead


class SessionClaims(BaseModel):
    """Decoded, validated token claims."""

    sub: int
    role: str
    issued_at: datetime
    expires_at: datetime


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    issued_at: datetime
    expires_at: datetime


class SignInResponse(Token):
    subject: UserRead
