"""
Attendance state machine.

Per user and calendar day a record moves ``NoRecord -> CheckedIn ->
CheckedOut``; CheckedOut is terminal for the day. Every transition is
scoped to the caller-supplied ``now`` and evaluated against one
``AttendancePolicy``. Admin corrections and leave marking bypass the
windows but still keep ``total_hours`` consistent with the timestamps.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime

from portal.core.errors import (AlreadyCheckedIn, AlreadyCheckedOut,
                                InvalidCorrection, NotCheckedIn,
                                OutsideCheckInWindow, OutsideCheckOutWindow,
                                RecordNotFound)
from portal.models.attendance import (SOURCE_ADMIN, SOURCE_LEAVE, SOURCE_SELF,
                                      STATUS_LATE, STATUS_ON_LEAVE,
                                      STATUS_PRESENT, VALID_STATUSES,
                                      AttendanceRecord)
from portal.repositories.attendance import AttendanceRepository
from portal.services.policy import AttendancePolicy

logger = logging.getLogger(__name__)


def compute_total_hours(check_in_time: datetime, check_out_time: datetime) -> float:
    """Elapsed hours between the two instants, rounded to two decimals."""
    seconds = (check_out_time - check_in_time).total_seconds()
    if seconds < 0:
        raise ValueError("check-out precedes check-in")
    return round(seconds / 3600, 2)


class AttendanceEngine:
    def __init__(self, records: AttendanceRepository, policy: AttendancePolicy) -> None:
        self._records = records
        self.policy = policy

    # ── Reads ──────────────────────────────────────────────────────
    async def today(self, user_id: int, now: datetime) -> AttendanceRecord | None:
        return await self._records.get_for_user_and_date(user_id, self.policy.local_date(now))

    async def history(
        self, user_id: int, start: date | None = None, end: date | None = None
    ) -> list[AttendanceRecord]:
        return await self._records.list_for_user(user_id, start, end)

    async def for_date(self, day: date) -> list[AttendanceRecord]:
        return await self._records.list_for_date(day)

    # ── Self-service transitions ───────────────────────────────────
    async def check_in(self, user_id: int, now: datetime) -> AttendanceRecord:
        day = self.policy.local_date(now)

        existing = await self._records.get_for_user_and_date(user_id, day)
        if existing is not None:
            logger.info("Check-in rejected for user %s on %s: record already exists", user_id, day)
            raise AlreadyCheckedIn()

        if not self.policy.is_checkin_allowed(now):
            logger.info(
                "Check-in rejected for user %s at %s: outside window %s (%s)",
                user_id,
                now.isoformat(),
                self.policy.describe_checkin_window(),
                self.policy.timezone_offset,
            )
            raise OutsideCheckInWindow(
                f"Check-in is allowed between {self.policy.describe_checkin_window()}"
            )

        status = STATUS_LATE if self.policy.is_late(now) else STATUS_PRESENT
        record = await self._records.insert_if_absent(
            AttendanceRecord(
                user_id=user_id,
                date=day,
                check_in_time=now,
                status=status,
                source=SOURCE_SELF,
            )
        )
        if record is None:
            # Another device won the race between our read and insert.
            raise AlreadyCheckedIn()

        logger.info(
            "User %s checked in at %s as %s (late after %s)",
            user_id,
            now.isoformat(),
            status,
            f"{self.policy.late_after:%H:%M}",
        )
        return record

    async def check_out(self, user_id: int, now: datetime) -> AttendanceRecord:
        day = self.policy.local_date(now)

        record = await self._records.get_for_user_and_date(user_id, day)
        if record is None or record.check_in_time is None:
            logger.info("Check-out rejected for user %s on %s: no check-in", user_id, day)
            raise NotCheckedIn()
        if record.check_out_time is not None:
            logger.info("Check-out rejected for user %s on %s: already checked out", user_id, day)
            raise AlreadyCheckedOut()

        if not self.policy.is_checkout_allowed(now):
            logger.info(
                "Check-out rejected for user %s at %s: after cutoff %s (%s)",
                user_id,
                now.isoformat(),
                self.policy.describe_checkout_cutoff(),
                self.policy.timezone_offset,
            )
            raise OutsideCheckOutWindow(
                f"Check-out is allowed until {self.policy.describe_checkout_cutoff()}"
            )

        try:
            total_hours = compute_total_hours(record.check_in_time, now)
        except ValueError:
            logger.warning(
                "Check-out rejected for user %s: clock at %s is before check-in %s",
                user_id,
                now.isoformat(),
                record.check_in_time.isoformat(),
            )
            raise OutsideCheckOutWindow("Check-out cannot precede check-in") from None

        closed = await self._records.close_open_checkin(record.id, now, total_hours)
        if closed is None:
            raise AlreadyCheckedOut()

        logger.info("User %s checked out at %s after %.2fh", user_id, now.isoformat(), total_hours)
        return closed

    # ── Collaborator hooks ─────────────────────────────────────────
    async def correct(
        self,
        record_id: int,
        *,
        check_in_time: datetime | None = None,
        check_out_time: datetime | None = None,
        status: str | None = None,
    ) -> AttendanceRecord:
        """Admin edit: no window checks, but the record invariants still hold."""
        record = await self._records.get(record_id)
        if record is None:
            raise RecordNotFound()

        new_in = check_in_time if check_in_time is not None else record.check_in_time
        new_out = check_out_time if check_out_time is not None else record.check_out_time

        if status is not None and status not in VALID_STATUSES:
            raise InvalidCorrection(f"Unknown status {status!r}")
        if new_out is not None and new_in is None:
            raise InvalidCorrection("A check-out time needs a check-in time")
        for ts in (new_in, new_out):
            if ts is not None and ts.tzinfo is None:
                raise InvalidCorrection("Timestamps must include a timezone")
            if ts is not None and self.policy.local_date(ts) != record.date:
                raise InvalidCorrection(
                    f"Timestamps must fall on the record's date {record.date.isoformat()}"
                )

        total_hours = None
        if new_in is not None and new_out is not None:
            try:
                total_hours = compute_total_hours(new_in, new_out)
            except ValueError:
                raise InvalidCorrection("Check-out must not precede check-in") from None

        record.check_in_time = new_in
        record.check_out_time = new_out
        record.total_hours = total_hours
        if status is not None:
            record.status = status
        record.source = SOURCE_ADMIN

        saved = await self._records.save(record)
        logger.info(
            "Attendance %s corrected: in=%s out=%s status=%s",
            record_id,
            new_in.isoformat() if new_in else None,
            new_out.isoformat() if new_out else None,
            saved.status,
        )
        return saved

    async def mark_on_leave(self, user_id: int, days: Iterable[date]) -> list[AttendanceRecord]:
        """Called when a leave is approved; creates or updates one record per day."""
        marked: list[AttendanceRecord] = []
        for day in days:
            record = await self._records.get_for_user_and_date(user_id, day)
            if record is None:
                record = await self._records.insert_if_absent(
                    AttendanceRecord(
                        user_id=user_id, date=day, status=STATUS_ON_LEAVE, source=SOURCE_LEAVE
                    )
                )
                if record is None:
                    record = await self._records.get_for_user_and_date(user_id, day)
            if record is not None and record.status != STATUS_ON_LEAVE:
                record.status = STATUS_ON_LEAVE
                record.source = SOURCE_LEAVE
                record = await self._records.save(record)
            if record is not None:
                marked.append(record)
        logger.info("User %s marked on leave for %d day(s)", user_id, len(marked))
        return marked
