"""Tests for the canonical attendance policy."""

from datetime import datetime, time, timedelta, timezone

import pytest
from conftest import TODAY, at

from portal.core.config import Settings
from portal.services.policy import AttendancePolicy, parse_offset

POLICY = AttendancePolicy(
    checkin_open=time(9, 0),
    late_after=time(9, 15),
    checkin_close=time(12, 0),
    checkout_cutoff=time(15, 55),
)


def test_parse_offset_variants():
    assert parse_offset("+05:30").utcoffset(None) == timedelta(hours=5, minutes=30)
    assert parse_offset("-04:00").utcoffset(None) == timedelta(hours=-4)
    assert parse_offset("+02").utcoffset(None) == timedelta(hours=2)


@pytest.mark.parametrize("bad", ["", "05:30", "+25:00", "+05:75", "UTC"])
def test_parse_offset_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_offset(bad)


def test_policy_from_settings_uses_configured_boundaries():
    policy = AttendancePolicy.from_settings(
        Settings(CHECKIN_OPEN="08:30", LATE_AFTER="08:45", CHECKIN_CLOSE="11:00",
                 CHECKOUT_CUTOFF="18:00", TIMEZONE_OFFSET="+01:00")
    )
    assert policy.checkin_open == time(8, 30)
    assert policy.late_after == time(8, 45)
    assert policy.checkin_close == time(11, 0)
    assert policy.checkout_cutoff == time(18, 0)
    assert policy.timezone_offset == "+01:00"


@pytest.mark.parametrize(
    "kwargs",
    [
        # late threshold must come before the window closes
        dict(checkin_open=time(9), late_after=time(12), checkin_close=time(12), checkout_cutoff=time(16)),
        # late threshold cannot precede opening
        dict(checkin_open=time(9), late_after=time(8), checkin_close=time(12), checkout_cutoff=time(16)),
        # check-out cutoff cannot precede check-in close
        dict(checkin_open=time(9), late_after=time(9, 15), checkin_close=time(12), checkout_cutoff=time(11)),
    ],
)
def test_policy_rejects_inconsistent_windows(kwargs):
    with pytest.raises(ValueError):
        AttendancePolicy(**kwargs)


def test_checkin_window_is_inclusive_at_both_ends():
    assert not POLICY.is_checkin_allowed(at(8, 59, 59))
    assert POLICY.is_checkin_allowed(at(9, 0))
    assert POLICY.is_checkin_allowed(at(12, 0))
    assert not POLICY.is_checkin_allowed(at(12, 0, 1))


def test_late_threshold_is_strict():
    assert not POLICY.is_late(at(9, 14, 59))
    assert not POLICY.is_late(at(9, 15))
    assert POLICY.is_late(at(9, 15) + timedelta(microseconds=1))
    assert POLICY.is_late(at(9, 20))


def test_checkout_cutoff_is_inclusive():
    assert POLICY.is_checkout_allowed(at(15, 55))
    assert not POLICY.is_checkout_allowed(at(15, 55, 1))
    assert not POLICY.is_checkout_allowed(at(16, 10))


def test_windows_are_evaluated_in_local_time():
    ist = AttendancePolicy(
        checkin_open=time(9, 0),
        late_after=time(9, 15),
        checkin_close=time(12, 0),
        checkout_cutoff=time(15, 55),
        timezone_offset="+05:30",
    )
    # 03:40 UTC is 09:10 in +05:30
    morning = datetime(2026, 10, 19, 3, 40, tzinfo=timezone.utc)
    assert ist.local_time(morning) == time(9, 10)
    assert ist.is_checkin_allowed(morning)
    assert not ist.is_late(morning)

    # 20:00 UTC on the 18th is already the 19th locally
    evening = datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc)
    assert ist.local_date(evening) == TODAY


def test_naive_instants_are_refused():
    with pytest.raises(ValueError):
        POLICY.is_late(datetime(2026, 10, 19, 9, 0))


def test_unified_policy_fixes_surfaces_that_disagreed():
    """One surface opened at 09:15 and never closed; another opened at 09:15
    and closed at 12:00 while calling anything after 09:15 late. The unified
    policy opens before the late threshold so on-time arrivals are possible."""
    policy = AttendancePolicy.from_settings(Settings())
    assert policy.checkin_open < policy.late_after < policy.checkin_close
    assert policy.is_checkin_allowed(at(9, 10)) and not policy.is_late(at(9, 10))
