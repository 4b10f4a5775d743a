"""
User model — credentials & role-based access control.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, String

from portal.db.base import Base
from portal.db.types import UTCDateTime

ROLE_ADMIN = "admin"
ROLE_EMPLOYEE = "employee"


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    emp_id: str = Column(String(64), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    department: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    # NULL means the account was provisioned without a secret and cannot sign in.
    hashed_password: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ROLE_EMPLOYEE,
        server_default=ROLE_EMPLOYEE,
    )  # admin | employee
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
    )
