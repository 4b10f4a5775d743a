"""Tests for the /attendance endpoints."""

from datetime import timedelta

import pytest
from conftest import TODAY, at
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_checkin_and_checkout_flow(async_client: AsyncClient, make_user, auth_headers, clock):
    user = await make_user()
    clock.set(at(9, 5))
    headers = auth_headers(user)

    resp = await async_client.post("/api/v1/attendance/check-in", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["user_id"] == user.id
    assert data["date"] == TODAY.isoformat()
    assert data["status"] == "present"
    assert data["check_out_time"] is None
    assert data["total_hours"] is None

    clock.set(at(9, 10))
    today = await async_client.get("/api/v1/attendance/today", headers=headers)
    assert today.json()["id"] == data["id"]

    clock.set(at(15, 35))
    resp = await async_client.post("/api/v1/attendance/check-out", headers=auth_headers(user))
    assert resp.status_code == 200
    out = resp.json()
    assert out["id"] == data["id"]
    assert out["total_hours"] == 6.5
    assert out["status"] == "present"


@pytest.mark.asyncio
async def test_scenario_late_employee_misses_checkout_cutoff(
    async_client: AsyncClient, make_user, auth_headers, clock
):
    e1 = await make_user()
    e2 = await make_user()

    clock.set(at(9, 10))
    r1 = await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(e1))
    clock.set(at(9, 20))
    r2 = await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(e2))
    assert r1.json()["status"] == "present"
    assert r2.json()["status"] == "late"

    clock.set(at(16, 10))
    headers = auth_headers(e2)
    resp = await async_client.post("/api/v1/attendance/check-out", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "OutsideCheckOutWindow"
    assert "15:55" in resp.json()["detail"]

    today = await async_client.get("/api/v1/attendance/today", headers=headers)
    assert today.json()["check_out_time"] is None


@pytest.mark.asyncio
async def test_double_checkin_is_rejected(async_client: AsyncClient, make_user, auth_headers, clock):
    user = await make_user()
    clock.set(at(9, 5))
    headers = auth_headers(user)
    first = await async_client.post("/api/v1/attendance/check-in", headers=headers)
    second = await async_client.post("/api/v1/attendance/check-in", headers=headers)
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "AlreadyCheckedIn"

    history = await async_client.get("/api/v1/attendance/history", headers=headers)
    assert len(history.json()) == 1
    assert history.json()[0]["check_in_time"] == first.json()["check_in_time"]


@pytest.mark.asyncio
async def test_checkin_before_window(async_client: AsyncClient, make_user, auth_headers, clock):
    user = await make_user()
    clock.set(at(8, 30))
    resp = await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(user))
    assert resp.status_code == 403
    assert resp.json()["code"] == "OutsideCheckInWindow"

    today = await async_client.get("/api/v1/attendance/today", headers=auth_headers(user))
    assert today.status_code == 200
    assert today.json() is None


@pytest.mark.asyncio
async def test_checkout_without_checkin(async_client: AsyncClient, make_user, auth_headers, clock):
    user = await make_user()
    clock.set(at(14, 0))
    resp = await async_client.post("/api/v1/attendance/check-out", headers=auth_headers(user))
    assert resp.status_code == 409
    assert resp.json()["code"] == "NotCheckedIn"


@pytest.mark.asyncio
async def test_attendance_requires_a_session(async_client: AsyncClient, clock):
    for path in ("/api/v1/attendance/check-in", "/api/v1/attendance/check-out"):
        assert (await async_client.post(path)).status_code == 401
    assert (await async_client.get("/api/v1/attendance/today")).status_code == 401


@pytest.mark.asyncio
async def test_policy_endpoint_exposes_canonical_windows(
    async_client: AsyncClient, make_user, auth_headers
):
    user = await make_user()
    resp = await async_client.get("/api/v1/attendance/policy", headers=auth_headers(user))
    assert resp.status_code == 200
    assert resp.json() == {
        "checkin_open": "09:00:00",
        "late_after": "09:15:00",
        "checkin_close": "12:00:00",
        "checkout_cutoff": "15:55:00",
        "timezone_offset": "+00:00",
    }


@pytest.mark.asyncio
async def test_history_defaults_to_last_thirty_days(
    async_client: AsyncClient, make_user, auth_headers, clock
):
    user = await make_user()
    for days_ago in (40, 5, 1):
        clock.set(at(9, 5, day=TODAY - timedelta(days=days_ago)))
        await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(user))

    clock.set(at(10, 0))
    resp = await async_client.get("/api/v1/attendance/history", headers=auth_headers(user))
    dates = [r["date"] for r in resp.json()]
    assert dates == [
        (TODAY - timedelta(days=1)).isoformat(),
        (TODAY - timedelta(days=5)).isoformat(),
    ]

    resp = await async_client.get(
        "/api/v1/attendance/history",
        params={"start": (TODAY - timedelta(days=60)).isoformat()},
        headers=auth_headers(user),
    )
    assert len(resp.json()) == 3


# ── Admin ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_admin_lists_day_and_corrects_record(
    async_client: AsyncClient, make_user, auth_headers, clock
):
    admin = await make_user(role="admin")
    user = await make_user()
    clock.set(at(9, 20))
    record = (await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(user))).json()

    listing = await async_client.get(
        "/api/v1/attendance", params={"date": TODAY.isoformat()}, headers=auth_headers(admin)
    )
    assert [r["id"] for r in listing.json()] == [record["id"]]

    resp = await async_client.patch(
        f"/api/v1/attendance/{record['id']}",
        json={
            "check_in_time": "2026-10-19T09:05:00Z",
            "check_out_time": "2026-10-19T17:35:30Z",
            "status": "present",
        },
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_hours"] == 8.51
    assert body["status"] == "present"
    assert body["source"] == "admin"


@pytest.mark.asyncio
async def test_correction_validation(async_client: AsyncClient, make_user, auth_headers, clock):
    admin = await make_user(role="admin")
    user = await make_user()
    record = (await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(user))).json()

    bad_status = await async_client.patch(
        f"/api/v1/attendance/{record['id']}", json={"status": "sleeping"}, headers=auth_headers(admin)
    )
    assert bad_status.status_code == 422

    negative = await async_client.patch(
        f"/api/v1/attendance/{record['id']}",
        json={"check_out_time": "2026-10-19T08:00:00Z"},
        headers=auth_headers(admin),
    )
    assert negative.status_code == 422
    assert negative.json()["code"] == "InvalidCorrection"

    missing = await async_client.patch(
        "/api/v1/attendance/9999", json={"status": "absent"}, headers=auth_headers(admin)
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_employee_cannot_use_admin_endpoints(
    async_client: AsyncClient, make_user, auth_headers, clock
):
    user = await make_user()
    record = (await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(user))).json()

    assert (await async_client.get("/api/v1/attendance", headers=auth_headers(user))).status_code == 403
    resp = await async_client.patch(
        f"/api/v1/attendance/{record['id']}", json={"status": "present"}, headers=auth_headers(user)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_marks_leave_range(async_client: AsyncClient, make_user, auth_headers, clock):
    admin = await make_user(role="admin")
    user = await make_user()
    resp = await async_client.post(
        "/api/v1/attendance/leave",
        json={
            "user_id": user.id,
            "from_date": TODAY.isoformat(),
            "to_date": (TODAY + timedelta(days=2)).isoformat(),
        },
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    assert [r["status"] for r in resp.json()] == ["onLeave"] * 3

    # An on-leave day has no open check-in, and the row blocks a check-in.
    checkin = await async_client.post("/api/v1/attendance/check-in", headers=auth_headers(user))
    assert checkin.status_code == 409


@pytest.mark.asyncio
async def test_leave_range_must_be_ordered(async_client: AsyncClient, make_user, auth_headers, clock):
    admin = await make_user(role="admin")
    resp = await async_client.post(
        "/api/v1/attendance/leave",
        json={"user_id": admin.id, "from_date": "2026-10-20", "to_date": "2026-10-19"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 422
