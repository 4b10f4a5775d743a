"""
Session manager — issues and validates signed, short-lived access tokens.

Tokens are stateless: validity is the signature plus the ``exp`` claim
compared against the injected clock. Expired and malformed tokens both
resolve to "no session"; the reason is only logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from portal.core.config import settings
from portal.core.errors import SessionExpired, SessionInvalid
from portal.core.security import JWTError, decode_token, encode_token
from portal.models.user import User
from portal.repositories.users import UserRepository
from portal.schemas.token import SessionClaims
from portal.schemas.user import Subject

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    issued_at: datetime
    expires_at: datetime


class SessionManager:
    def __init__(self, users: UserRepository | None = None, ttl: timedelta | None = None) -> None:
        self._users = users
        self.ttl = ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def issue(self, subject: Subject, now: datetime) -> IssuedToken:
        # Claims carry whole seconds; truncate so the reported expiry matches.
        issued_at = now.astimezone(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + self.ttl
        token = encode_token(subject.id, subject.role, issued_at, expires_at)
        logger.info("Session issued for user %s (expires %s)", subject.id, expires_at.isoformat())
        return IssuedToken(access_token=token, issued_at=issued_at, expires_at=expires_at)

    def validate(self, token: str, now: datetime) -> SessionClaims:
        """Return the claims or raise ``SessionInvalid`` / ``SessionExpired``."""
        if not token:
            raise SessionInvalid("empty token")
        try:
            payload = decode_token(token)
        except JWTError as exc:
            raise SessionInvalid(f"undecodable token: {exc.__class__.__name__}") from None

        if payload.get("type") != "access":
            raise SessionInvalid("wrong token type")
        sub, role, iat, exp = (payload.get(k) for k in ("sub", "role", "iat", "exp"))
        if not isinstance(sub, str) or not sub.isdigit():
            raise SessionInvalid("missing or malformed subject")
        if not isinstance(role, str) or not isinstance(iat, int) or not isinstance(exp, int):
            raise SessionInvalid("missing or malformed claims")

        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        if now >= expires_at:
            raise SessionExpired("token expired")

        return SessionClaims(
            sub=int(sub),
            role=role,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=expires_at,
        )

    def decode(self, token: str | None, now: datetime) -> SessionClaims | None:
        try:
            return self.validate(token or "", now)
        except (SessionInvalid, SessionExpired) as exc:
            logger.debug("Session rejected: %s", exc.message)
            return None

    async def resolve_current_user(self, token: str | None, now: datetime) -> User | None:
        """Decode *token* and re-fetch its subject so role / active changes apply."""
        claims = self.decode(token, now)
        if claims is None:
            return None
        if self._users is None:
            raise RuntimeError("SessionManager needs a UserRepository to resolve users")
        user = await self._users.get_by_id(claims.sub)
        if user is None or not user.is_active:
            logger.info("Session for user %s no longer maps to an active account", claims.sub)
            return None
        return user

    def revoke(self) -> None:
        """Tokens are not tracked server-side; dropping the client copy is the revoke."""
