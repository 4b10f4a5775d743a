"""
Credential verification — runs server-side only.

The stored hash never leaves this module, and the caller cannot tell an
unknown identifier from a wrong password or a deactivated account: every
failure is an ``InvalidCredentials`` with the same message, and a dummy
bcrypt round is spent when there is no hash to compare against.
"""

from __future__ import annotations

import logging

from portal.core.errors import AccountMisconfigured, InvalidCredentials
from portal.core.security import dummy_verify, verify_password
from portal.repositories.users import UserRepository, normalise_identifier
from portal.schemas.user import Subject

logger = logging.getLogger(__name__)


class CredentialVerifier:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    async def verify(self, identifier: str, password: str) -> Subject:
        email = normalise_identifier(identifier)
        user = await self._users.get_by_email(email)

        if user is None or not user.is_active:
            dummy_verify()
            logger.info("Sign-in rejected for %s: unknown or inactive account", email)
            raise InvalidCredentials("unknown or inactive account")

        if not user.hashed_password:
            dummy_verify()
            logger.warning("Sign-in rejected for user %s: no password hash on record", user.id)
            raise AccountMisconfigured("no password hash on record")

        try:
            valid = verify_password(password, user.hashed_password)
        except ValueError:
            logger.warning("Sign-in rejected for user %s: stored hash is unreadable", user.id)
            raise AccountMisconfigured("stored hash is unreadable") from None

        if not valid:
            logger.info("Sign-in rejected for user %s: wrong password", user.id)
            raise InvalidCredentials("wrong password")

        return Subject(id=user.id, email=user.email, role=user.role)
