"""
Realtime endpoint — pushes attendance changes over a WebSocket.

Browsers cannot set an Authorization header on a WebSocket handshake, so
the access token travels as a query parameter. Employees only ever see
their own rows; admins may ask for everything with ``all=true``. The
subscription is released as soon as the client hangs up, not on the next
event.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from fastapi import (APIRouter, Depends, Query, WebSocket, WebSocketDisconnect,
                     status)
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.v1.deps import get_db, get_now
from portal.models.user import ROLE_ADMIN
from portal.realtime.feed import Subscription, change_feed
from portal.repositories.attendance import TABLE
from portal.repositories.users import UserRepository
from portal.services.sessions import SessionManager

router = APIRouter(prefix="/realtime", tags=["realtime"])
logger = logging.getLogger(__name__)


@router.websocket("/attendance")
async def attendance_changes(
    websocket: WebSocket,
    token: str | None = Query(None),
    everyone: bool = Query(False, alias="all"),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
) -> None:
    user = await SessionManager(UserRepository(db)).resolve_current_user(token, now)
    # The subscription can outlive the request; do not pin a connection.
    await db.close()
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    filters = {} if everyone and user.role == ROLE_ADMIN else {"user_id": user.id}
    await websocket.accept()
    logger.info("User %s subscribed to attendance changes (%s)", user.id, filters or "all")

    with change_feed.subscribe(TABLE, **filters) as subscription:
        sender = asyncio.create_task(_forward(websocket, subscription))
        watcher = asyncio.create_task(_wait_for_disconnect(websocket))
        done, pending = await asyncio.wait({sender, watcher}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()
    logger.info("User %s unsubscribed from attendance changes", user.id)


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    try:
        async for event in subscription:
            await websocket.send_json({"op": event.op, "row": event.row})
    except WebSocketDisconnect:
        pass


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Inbound frames carry nothing; reading them is how a hang-up is noticed.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
