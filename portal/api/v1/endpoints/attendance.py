"""
Attendance endpoints.

- Self-service (any signed-in user): policy, today, history, check-in,
  check-out. Transitions always use the server clock and the caller's own
  identity; nothing in the request body can choose either.
- Admin: day listing, corrections, leave marking.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, Query

from portal.api.v1.deps import (get_attendance_engine, get_current_user,
                                get_now, get_policy, require_admin)
from portal.models.attendance import AttendanceRecord
from portal.models.user import User
from portal.schemas.attendance import (AttendanceCorrection,
                                       AttendancePolicyRead, AttendanceRead,
                                       LeaveRequest)
from portal.services.attendance import AttendanceEngine
from portal.services.policy import AttendancePolicy

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


@router.get("/policy", response_model=AttendancePolicyRead)
async def read_policy(
    policy: AttendancePolicy = Depends(get_policy),
    _user: User = Depends(get_current_user),
) -> AttendancePolicyRead:
    """The canonical check-in / check-out windows."""
    return AttendancePolicyRead(
        checkin_open=policy.checkin_open,
        late_after=policy.late_after,
        checkin_close=policy.checkin_close,
        checkout_cutoff=policy.checkout_cutoff,
        timezone_offset=policy.timezone_offset,
    )


@router.get("/today", response_model=AttendanceRead | None)
async def read_today(
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> AttendanceRecord | None:
    return await engine.today(current_user.id, now)


@router.get("/history", response_model=list[AttendanceRead])
async def read_history(
    start: date | None = Query(None, description="First day (inclusive), default 30 days ago"),
    end: date | None = Query(None, description="Last day (inclusive), default today"),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> list[AttendanceRecord]:
    end = end or engine.policy.local_date(now)
    start = start or end - timedelta(days=30)
    return await engine.history(current_user.id, start, end)


@router.post("/check-in", response_model=AttendanceRead)
async def check_in(
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> AttendanceRecord:
    return await engine.check_in(current_user.id, now)


@router.post("/check-out", response_model=AttendanceRead)
async def check_out(
    engine: AttendanceEngine = Depends(get_attendance_engine),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> AttendanceRecord:
    return await engine.check_out(current_user.id, now)


# ── Admin ───────────────────────────────────────────────────────────
@router.get("", response_model=list[AttendanceRead])
async def list_for_date(
    day: date | None = Query(None, alias="date", description="Calendar day, default today"),
    engine: AttendanceEngine = Depends(get_attendance_engine),
    _admin: User = Depends(require_admin),
    now: datetime = Depends(get_now),
) -> list[AttendanceRecord]:
    return await engine.for_date(day or engine.policy.local_date(now))


@router.patch("/{record_id}", response_model=AttendanceRead)
async def correct_record(
    record_id: int,
    body: AttendanceCorrection,
    engine: AttendanceEngine = Depends(get_attendance_engine),
    admin: User = Depends(require_admin),
) -> AttendanceRecord:
    """Admin correction: bypasses the policy windows, recomputes total hours."""
    logger.info("Admin %s correcting attendance %s", admin.id, record_id)
    return await engine.correct(record_id, **body.model_dump(exclude_unset=True))


@router.post("/leave", response_model=list[AttendanceRead])
async def mark_on_leave(
    body: LeaveRequest,
    engine: AttendanceEngine = Depends(get_attendance_engine),
    _admin: User = Depends(require_admin),
) -> list[AttendanceRecord]:
    """Hook for the leave-approval flow: marks each day in the range ``onLeave``."""
    days = [
        body.from_date + timedelta(days=i)
        for i in range((body.to_date - body.from_date).days + 1)
    ]
    return await engine.mark_on_leave(body.user_id, days)
