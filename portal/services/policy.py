"""
Attendance policy — the single set of time-of-day windows every surface uses.

All boundaries are evaluated in the organisation's local time, derived from
a fixed UTC offset (e.g. ``+05:30``):

- check-in is accepted from ``checkin_open`` to ``checkin_close`` inclusive;
- a check-in strictly after ``late_after`` is classified ``late``;
- check-out is accepted up to and including ``checkout_cutoff``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from portal.core.config import Settings


def parse_offset(tz_offset: str) -> timezone:
    """Turn ``+HH:MM`` / ``-HH:MM`` / ``+HH`` into a fixed ``timezone``."""
    tz_offset = tz_offset.strip()
    if not tz_offset or tz_offset[0] not in "+-":
        raise ValueError(f"Invalid timezone offset: {tz_offset!r}")
    sign = 1 if tz_offset[0] == "+" else -1
    offset_parts = tz_offset[1:].split(":")
    offset_hours = int(offset_parts[0])
    offset_mins = int(offset_parts[1]) if len(offset_parts) > 1 else 0
    if offset_hours > 14 or offset_mins > 59:
        raise ValueError(f"Invalid timezone offset: {tz_offset!r}")
    return timezone(timedelta(hours=sign * offset_hours, minutes=sign * offset_mins))


def parse_clock(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS``."""
    return time.fromisoformat(value.strip())


@dataclass(frozen=True)
class AttendancePolicy:
    checkin_open: time
    late_after: time
    checkin_close: time
    checkout_cutoff: time
    timezone_offset: str = "+00:00"

    def __post_init__(self) -> None:
        if not (self.checkin_open <= self.late_after < self.checkin_close <= self.checkout_cutoff):
            raise ValueError(
                "Attendance policy must satisfy "
                "checkin_open <= late_after < checkin_close <= checkout_cutoff"
            )
        parse_offset(self.timezone_offset)

    @classmethod
    def from_settings(cls, settings: Settings) -> AttendancePolicy:
        return cls(
            checkin_open=parse_clock(settings.CHECKIN_OPEN),
            late_after=parse_clock(settings.LATE_AFTER),
            checkin_close=parse_clock(settings.CHECKIN_CLOSE),
            checkout_cutoff=parse_clock(settings.CHECKOUT_CUTOFF),
            timezone_offset=settings.TIMEZONE_OFFSET,
        )

    @property
    def tz(self) -> timezone:
        return parse_offset(self.timezone_offset)

    def localize(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            raise ValueError("Policy evaluation needs a timezone-aware instant")
        return now.astimezone(self.tz)

    def local_date(self, now: datetime) -> date:
        return self.localize(now).date()

    def local_time(self, now: datetime) -> time:
        return self.localize(now).time()

    def is_checkin_allowed(self, now: datetime) -> bool:
        return self.checkin_open <= self.local_time(now) <= self.checkin_close

    def is_late(self, now: datetime) -> bool:
        return self.local_time(now) > self.late_after

    def is_checkout_allowed(self, now: datetime) -> bool:
        return self.local_time(now) <= self.checkout_cutoff

    def describe_checkin_window(self) -> str:
        return f"{self.checkin_open:%H:%M}-{self.checkin_close:%H:%M}"

    def describe_checkout_cutoff(self) -> str:
        return f"{self.checkout_cutoff:%H:%M}"
