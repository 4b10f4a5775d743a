"""
Attendance record — one row per (user, calendar date).
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, Float, ForeignKey, Integer, String, UniqueConstraint

from portal.db.base import Base
from portal.db.types import UTCDateTime

STATUS_PRESENT = "present"
STATUS_LATE = "late"
STATUS_ABSENT = "absent"
STATUS_ON_LEAVE = "onLeave"
VALID_STATUSES = (STATUS_PRESENT, STATUS_LATE, STATUS_ABSENT, STATUS_ON_LEAVE)

SOURCE_SELF = "self"
SOURCE_ADMIN = "admin"
SOURCE_LEAVE = "leave"


class AttendanceRecord(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    check_in_time: datetime | None = Column(UTCDateTime(), nullable=True)  # type: ignore[assignment]
    check_out_time: datetime | None = Column(UTCDateTime(), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default=STATUS_PRESENT)  # type: ignore[assignment]
    # present | late | absent | onLeave
    total_hours: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    source: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
