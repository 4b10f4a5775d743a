"""Pydantic schemas for attendance, policy and presence."""

from __future__ import annotations

import datetime as dt
from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator, model_validator

from portal.models.attendance import VALID_STATUSES


# ── Attendance ──────────────────────────────────────────────────────
class AttendanceRead(BaseModel):
    id: int
    user_id: int
    date: dt.date
    check_in_time: datetime | None
    check_out_time: datetime | None
    status: str
    total_hours: float | None
    source: str | None = None

    model_config = {"from_attributes": True}


class AttendanceCorrection(BaseModel):
    """Admin edit; only the fields that are sent are applied."""

    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    status: str | None = None

    @field_validator("status")
    @classmethod
    def _status(cls, v: str | None) -> str | None:
        if v is not None and v not in VALID_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(VALID_STATUSES)}")
        return v


class LeaveRequest(BaseModel):
    user_id: int
    from_date: date
    to_date: date

    @model_validator(mode="after")
    def _range(self) -> "LeaveRequest":
        if self.to_date < self.from_date:
            raise ValueError("to_date must not be before from_date")
        if (self.to_date - self.from_date).days > 366:
            raise ValueError("Leave range must not exceed one year")
        return self


# ── Policy ──────────────────────────────────────────────────────────
class AttendancePolicyRead(BaseModel):
    checkin_open: time
    late_after: time
    checkin_close: time
    checkout_cutoff: time
    timezone_offset: str


# ── Presence ────────────────────────────────────────────────────────
class HeartbeatRequest(BaseModel):
    page: str | None = Field(default=None, max_length=300)
    user_agent: str | None = Field(default=None, max_length=500)


class HeartbeatResponse(BaseModel):
    recorded: bool


class OnlineUser(BaseModel):
    user_id: int
    email: str
    name: str | None
    last_seen: datetime


# ── Generic ────────────────────────────────────────────────────────
class LogoutResponse(BaseModel):
    message: str
