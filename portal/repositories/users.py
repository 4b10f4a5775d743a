"""
Credential store accessor — user lookups by identifier or id.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.user import User
from portal.repositories.base import storage_call


def normalise_identifier(identifier: str) -> str:
    return identifier.strip().lower()


class UserRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_by_email(self, email: str) -> User | None:
        result = await storage_call(
            self._db.execute(select(User).where(User.email == normalise_identifier(email))),
            "users.get_by_email",
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> User | None:
        # populate_existing: role / active flag may have changed since the
        # object was first loaded into this session.
        return await storage_call(
            self._db.get(User, user_id, populate_existing=True),
            "users.get_by_id",
        )

    async def add(self, user: User) -> User:
        user.email = normalise_identifier(user.email)
        self._db.add(user)
        await storage_call(self._db.commit(), "users.add")
        await self._db.refresh(user)
        return user
