"""
Employee portal core — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `services/`, `repositories/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.api.v1.api import api_router
from portal.api.v1.endpoints.auth import limiter
from portal.core.config import settings
from portal.core.exceptions import register_exception_handlers
from portal.core.security import get_password_hash
from portal.db.base import Base
from portal.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from portal.models.attendance import AttendanceRecord  # noqa: F401
from portal.models.presence import PresenceLog  # noqa: F401
from portal.models.user import ROLE_ADMIN, User
from portal.repositories.users import UserRepository

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_first_admin() -> None:
    """Create the bootstrap admin account if it does not exist yet."""
    async with async_session_factory() as session:
        users = UserRepository(session)
        if await users.get_by_email(settings.FIRST_ADMIN_EMAIL) is None:
            await users.add(
                User(
                    email=settings.FIRST_ADMIN_EMAIL,
                    emp_id=settings.FIRST_ADMIN_EMP_ID,
                    hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                    name="System Administrator",
                    role=ROLE_ADMIN,
                )
            )
            logger.info(
                "Default admin created: %s (password: <redacted>)",
                settings.FIRST_ADMIN_EMAIL,
            )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await seed_first_admin()

    logger.info("🚀 %s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Employee self-service portal: sessions & attendance",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.limiter = limiter

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
