"""
Presence endpoints — heartbeat and live "who is online" list.

Heartbeats are observability only: a storage failure is logged and the
request still succeeds, so a flaky presence table can never break a
signed-in session.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.v1.deps import get_current_user, get_db, get_now, require_admin
from portal.core.config import settings
from portal.core.errors import StorageUnavailable
from portal.models.user import User
from portal.repositories.presence import PresenceRepository
from portal.schemas.attendance import HeartbeatRequest, HeartbeatResponse, OnlineUser

router = APIRouter(prefix="/presence", tags=["presence"])
logger = logging.getLogger(__name__)


@router.post(
    "/heartbeat",
    response_model=HeartbeatResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def heartbeat(
    request: Request,
    body: HeartbeatRequest | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> HeartbeatResponse:
    body = body or HeartbeatRequest()
    user_agent = body.user_agent or request.headers.get("user-agent")
    try:
        await PresenceRepository(db).record(current_user.id, now, body.page, user_agent)
    except (StorageUnavailable, SQLAlchemyError) as exc:
        logger.warning("Heartbeat for user %s not recorded: %s", current_user.id, exc)
        await db.rollback()
        return HeartbeatResponse(recorded=False)
    return HeartbeatResponse(recorded=True)


@router.get("/online", response_model=list[OnlineUser])
async def online_users(
    minutes: int = Query(settings.PRESENCE_ONLINE_MINUTES, ge=1, le=24 * 60),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    now: datetime = Depends(get_now),
) -> list[OnlineUser]:
    rows = await PresenceRepository(db).online_since(now - timedelta(minutes=minutes))
    return [
        OnlineUser(user_id=uid, email=email, name=name, last_seen=last_seen)
        for uid, email, name, last_seen in rows
    ]
