"""
Row-store connection: async engine and session factory.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and
the test suite. Connect and pool-checkout waits share the storage timeout
so a stalled database surfaces as ``StorageUnavailable`` instead of
hanging a request.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal.core.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_recycle=300,
            pool_timeout=settings.STORAGE_TIMEOUT_SECONDS,
            connect_args={
                "timeout": settings.STORAGE_TIMEOUT_SECONDS,
                "command_timeout": settings.STORAGE_TIMEOUT_SECONDS,
            },
        )
    elif url.startswith("sqlite"):
        options["connect_args"] = {"timeout": settings.STORAGE_TIMEOUT_SECONDS}
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
