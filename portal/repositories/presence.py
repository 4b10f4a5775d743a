"""
Presence repository — heartbeat writes and the "who is online" query.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.presence import PresenceLog
from portal.models.user import User
from portal.realtime.feed import ChangeEvent, ChangeFeed, change_feed
from portal.repositories.base import storage_call


class PresenceRepository:
    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None) -> None:
        self._db = db
        self._feed = feed if feed is not None else change_feed

    async def record(
        self,
        user_id: int,
        now: datetime,
        page: str | None = None,
        user_agent: str | None = None,
    ) -> PresenceLog:
        log = PresenceLog(user_id=user_id, page=page, user_agent=user_agent, created_at=now)
        self._db.add(log)
        await storage_call(self._db.commit(), "presence.record")
        self._feed.publish(
            ChangeEvent(
                table="presence_logs",
                op="INSERT",
                row={"user_id": user_id, "page": page, "created_at": now.isoformat()},
            )
        )
        return log

    async def online_since(self, since: datetime) -> list[tuple[int, str, str | None, datetime]]:
        last_seen = func.max(PresenceLog.created_at).label("last_seen")
        result = await storage_call(
            self._db.execute(
                select(User.id, User.email, User.name, last_seen)
                .join(User, User.id == PresenceLog.user_id)
                .where(PresenceLog.created_at >= since, User.is_active.is_(True))
                .group_by(User.id, User.email, User.name)
                .order_by(last_seen.desc())
            ),
            "presence.online_since",
        )
        return [tuple(row) for row in result.all()]
