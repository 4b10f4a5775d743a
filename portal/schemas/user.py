"""Pydantic schemas for users and authenticated subjects."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class Subject(BaseModel):
    """The identity returned by a successful credential check."""

    id: int
    email: str
    role: str


class UserRead(BaseModel):
    id: int
    email: str
    emp_id: str
    name: str | None
    department: str | None
    role: str
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}
