"""
JWT signing / verification and password hashing (bcrypt).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from portal.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    """Compare *plain* against a stored hash.

    Raises ``ValueError`` when *hashed* is not a recognised hash.
    """
    return pwd_context.verify(plain, hashed)


def dummy_verify() -> None:
    """Spend the same time as a real comparison when there is nothing to compare."""
    pwd_context.dummy_verify()


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def encode_token(
    subject: str | Any,
    role: str,
    issued_at: datetime,
    expires_at: datetime,
) -> str:
    return jwt.encode(
        {
            "sub": str(subject),
            "role": role,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "type": "access",
        },
        _SECRET,
        algorithm=_ALGORITHM,
    )


def decode_token(token: str) -> dict:
    """Verify the signature and return the raw claims.

    Expiry is *not* checked here: the session layer compares ``exp``
    against its own clock. Raises ``JWTError`` on any structural or
    signature failure.
    """
    return jwt.decode(
        token,
        _SECRET,
        algorithms=[_ALGORITHM],
        options={"verify_exp": False},
    )


__all__ = [
    "JWTError",
    "decode_token",
    "dummy_verify",
    "encode_token",
    "get_password_hash",
    "pwd_context",
    "verify_password",
]
