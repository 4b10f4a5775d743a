"""
Attendance repository — the only code that reads or writes attendance rows.

The (user_id, date) unique constraint is the safety net for concurrent
check-ins: inserts go through ``insert_if_absent`` and check-outs through a
conditional update, so a lost race is reported instead of overwriting.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.attendance import AttendanceRecord
from portal.realtime.feed import ChangeEvent, ChangeFeed, change_feed
from portal.repositories.base import storage_call

logger = logging.getLogger(__name__)

TABLE = "attendance"


def record_to_row(record: AttendanceRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "date": record.date.isoformat(),
        "check_in_time": record.check_in_time.isoformat() if record.check_in_time else None,
        "check_out_time": record.check_out_time.isoformat() if record.check_out_time else None,
        "status": record.status,
        "total_hours": record.total_hours,
        "source": record.source,
    }


class AttendanceRepository:
    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None) -> None:
        self._db = db
        self._feed = feed if feed is not None else change_feed

    # ── Reads ──────────────────────────────────────────────────────
    async def get(self, record_id: int) -> AttendanceRecord | None:
        return await storage_call(
            self._db.get(AttendanceRecord, record_id, populate_existing=True),
            "attendance.get",
        )

    async def get_for_user_and_date(self, user_id: int, day: date) -> AttendanceRecord | None:
        result = await storage_call(
            self._db.execute(
                select(AttendanceRecord)
                .where(AttendanceRecord.user_id == user_id, AttendanceRecord.date == day)
                .execution_options(populate_existing=True)
            ),
            "attendance.get_for_user_and_date",
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: int, start: date | None = None, end: date | None = None
    ) -> list[AttendanceRecord]:
        stmt = select(AttendanceRecord).where(AttendanceRecord.user_id == user_id)
        if start is not None:
            stmt = stmt.where(AttendanceRecord.date >= start)
        if end is not None:
            stmt = stmt.where(AttendanceRecord.date <= end)
        result = await storage_call(
            self._db.execute(stmt.order_by(AttendanceRecord.date.desc())),
            "attendance.list_for_user",
        )
        return list(result.scalars().all())

    async def list_for_date(self, day: date) -> list[AttendanceRecord]:
        result = await storage_call(
            self._db.execute(
                select(AttendanceRecord)
                .where(AttendanceRecord.date == day)
                .order_by(AttendanceRecord.check_in_time.asc())
            ),
            "attendance.list_for_date",
        )
        return list(result.scalars().all())

    # ── Writes ─────────────────────────────────────────────────────
    async def insert_if_absent(self, record: AttendanceRecord) -> AttendanceRecord | None:
        """Insert *record*; ``None`` when a row for its (user, date) already exists.

        The insert runs in a SAVEPOINT so a duplicate only discards this row;
        objects already loaded in the session stay usable.
        """
        try:
            async with self._db.begin_nested():
                self._db.add(record)
                await storage_call(self._db.flush(), "attendance.insert")
        except IntegrityError:
            logger.info(
                "Attendance row for user %s on %s already exists", record.user_id, record.date
            )
            return None
        await storage_call(self._db.commit(), "attendance.insert.commit")
        self._publish("INSERT", record)
        return record

    async def close_open_checkin(
        self, record_id: int, check_out_time: datetime, total_hours: float
    ) -> AttendanceRecord | None:
        """Set the check-out only if the row is still open; ``None`` if it was not."""
        result = await storage_call(
            self._db.execute(
                update(AttendanceRecord)
                .where(
                    AttendanceRecord.id == record_id,
                    AttendanceRecord.check_in_time.is_not(None),
                    AttendanceRecord.check_out_time.is_(None),
                )
                .values(check_out_time=check_out_time, total_hours=total_hours)
                .execution_options(synchronize_session=False)
            ),
            "attendance.close_open_checkin",
        )
        await storage_call(self._db.commit(), "attendance.close_open_checkin.commit")
        if result.rowcount != 1:
            return None
        record = await self.get(record_id)
        if record is not None:
            self._publish("UPDATE", record)
        return record

    async def save(self, record: AttendanceRecord) -> AttendanceRecord:
        """Commit in-place changes to an already loaded record."""
        await storage_call(self._db.commit(), "attendance.save")
        await self._db.refresh(record)
        self._publish("UPDATE", record)
        return record

    def _publish(self, op: str, record: AttendanceRecord) -> None:
        self._feed.publish(ChangeEvent(table=TABLE, op=op, row=record_to_row(record)))
