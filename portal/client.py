"""
Async client for the portal API.

Holds the single persisted session blob under one storage key (replaced
wholesale on sign-in, cleared on sign-out) and owns the presence
``SessionRuntime``. Read calls are retried on ``StorageUnavailable`` with
a small fixed budget; check-in / check-out are never retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, MutableMapping
from datetime import datetime, timezone
from typing import Any

import httpx

from portal.core import errors

logger = logging.getLogger(__name__)

SESSION_KEY = "session"

_ERRORS_BY_CODE: dict[str, type[errors.PortalError]] = {
    cls.code: cls
    for cls in (
        errors.InvalidCredentials,
        errors.SessionInvalid,
        errors.OutsideCheckInWindow,
        errors.OutsideCheckOutWindow,
        errors.AlreadyCheckedIn,
        errors.AlreadyCheckedOut,
        errors.NotCheckedIn,
        errors.InvalidCorrection,
        errors.RecordNotFound,
        errors.StorageUnavailable,
    )
}


class PortalAPIError(errors.PortalError):
    """A non-2xx response that maps to no known domain error."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


def _raise_for_response(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    try:
        body = resp.json()
    except ValueError:
        body = {}
    code = body.get("code") if isinstance(body, dict) else None
    detail = body.get("detail") if isinstance(body, dict) else None
    error_cls = _ERRORS_BY_CODE.get(code or "")
    if error_cls is None and resp.status_code == 503:
        error_cls = errors.StorageUnavailable
    if error_cls is not None:
        raise error_cls(detail)
    raise PortalAPIError(resp.status_code, detail or resp.text)


class SessionRuntime:
    """Periodic presence heartbeat with an explicit start / stop lifecycle.

    A failed tick is logged and skipped; the runtime never raises into the
    session or attendance flow.
    """

    def __init__(
        self,
        beat: Callable[[], Awaitable[Any]],
        interval: float = 60.0,
        is_visible: Callable[[], bool] | None = None,
    ) -> None:
        self._beat = beat
        self.interval = interval
        self._is_visible = is_visible or (lambda: True)
        self._task: asyncio.Task | None = None
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="presence-heartbeat")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def tick(self) -> bool:
        if not self._is_visible():
            return False
        self.ticks += 1
        try:
            await self._beat()
        except Exception as exc:  # heartbeat is best-effort
            self.failures += 1
            logger.warning("Presence heartbeat failed: %s", exc)
            return False
        return True

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self.interval)


class PortalClient:
    def __init__(
        self,
        base_url: str,
        *,
        storage: MutableMapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
        read_retries: int = 2,
        retry_delay: float = 0.2,
        heartbeat_interval: float | None = 60.0,
        is_visible: Callable[[], bool] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self.storage: MutableMapping[str, str] = storage if storage is not None else {}
        self.read_retries = read_retries
        self.retry_delay = retry_delay
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.runtime: SessionRuntime | None = None
        if heartbeat_interval is not None:
            self.runtime = SessionRuntime(self.heartbeat, heartbeat_interval, is_visible)

    async def __aenter__(self) -> PortalClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self.runtime is not None:
            await self.runtime.stop()
        await self._http.aclose()

    # ── Session blob ───────────────────────────────────────────────
    def get_session(self) -> dict | None:
        raw = self.storage.get(SESSION_KEY)
        if not raw:
            return None
        try:
            session = json.loads(raw)
            expires_at = datetime.fromisoformat(session["expires_at"])
        except (ValueError, KeyError, TypeError):
            self.storage.pop(SESSION_KEY, None)
            return None
        if expires_at <= self._clock():
            self.storage.pop(SESSION_KEY, None)
            return None
        return session

    def _auth_headers(self) -> dict[str, str]:
        session = self.get_session()
        if session is None:
            raise errors.SessionInvalid()
        return {"Authorization": f"Bearer {session['access_token']}"}

    # ── Auth ───────────────────────────────────────────────────────
    async def sign_in(self, email: str, password: str) -> dict:
        resp = await self._http.post(
            "/api/v1/auth/login", data={"username": email, "password": password}
        )
        _raise_for_response(resp)
        body = resp.json()
        self.storage[SESSION_KEY] = json.dumps(
            {
                "user": body["subject"],
                "access_token": body["access_token"],
                "issued_at": body["issued_at"],
                "expires_at": body["expires_at"],
            }
        )
        if self.runtime is not None:
            self.runtime.start()
        return body

    async def sign_out(self) -> None:
        if self.runtime is not None:
            await self.runtime.stop()
        self.storage.pop(SESSION_KEY, None)
        try:
            await self._http.post("/api/v1/auth/logout")
        except httpx.HTTPError as exc:
            logger.info("Logout request failed, local session cleared anyway: %s", exc)

    async def me(self) -> dict:
        return await self._read("/api/v1/auth/me")

    # ── Attendance ─────────────────────────────────────────────────
    async def policy(self) -> dict:
        return await self._read("/api/v1/attendance/policy")

    async def today(self) -> dict | None:
        return await self._read("/api/v1/attendance/today")

    async def history(self, start: str | None = None, end: str | None = None) -> list[dict]:
        params = {k: v for k, v in (("start", start), ("end", end)) if v is not None}
        return await self._read("/api/v1/attendance/history", params=params)

    async def check_in(self) -> dict:
        return await self._write("/api/v1/attendance/check-in")

    async def check_out(self) -> dict:
        return await self._write("/api/v1/attendance/check-out")

    # ── Presence ───────────────────────────────────────────────────
    async def heartbeat(self, page: str | None = None) -> dict:
        return await self._write("/api/v1/presence/heartbeat", {"page": page})

    # ── Transport helpers ──────────────────────────────────────────
    async def _read(self, path: str, params: dict | None = None) -> Any:
        attempt = 0
        while True:
            resp = await self._http.get(path, params=params, headers=self._auth_headers())
            try:
                _raise_for_response(resp)
            except errors.StorageUnavailable:
                if attempt >= self.read_retries:
                    raise
                attempt += 1
                logger.info("GET %s unavailable, retry %d/%d", path, attempt, self.read_retries)
                await asyncio.sleep(self.retry_delay)
                continue
            return resp.json()

    async def _write(self, path: str, payload: dict | None = None) -> Any:
        resp = await self._http.post(path, json=payload, headers=self._auth_headers())
        _raise_for_response(resp)
        return resp.json()
