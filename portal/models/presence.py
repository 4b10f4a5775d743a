"""
Presence log — liveness pings sent while a session is open.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, Integer, String

from portal.db.base import Base
from portal.db.types import UTCDateTime


class PresenceLog(Base):
    __tablename__ = "presence_logs"
    __table_args__ = (Index("ix_presence_user_created", "user_id", "created_at"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    page: str | None = Column(String(300), nullable=True)  # type: ignore[assignment]
    user_agent: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
