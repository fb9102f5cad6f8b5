"""
GráficaOS time clock — application entry point.

This is the **only** file that assembles the app.  Business logic lives
in the `services/` package; `api/` only translates HTTP to service calls.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select

from app.api.v1.api import api_router
from app.api.v1.endpoints.auth import limiter
from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import async_session_factory, engine
from app.jobs.scheduler import create_scheduler

# Ensure all models are imported so metadata.create_all can see them
from app.models.punch import PunchRecord  # noqa: F401
from app.models.user import ROLE_ADMIN, User

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def _seed_admin() -> None:
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is None:
            session.add(
                User(
                    email=settings.FIRST_ADMIN_EMAIL,
                    hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                    name="Administrador",
                    role=ROLE_ADMIN,
                )
            )
            await session.commit()
            logger.info(
                "Default admin created: %s (password: <redacted>)",
                settings.FIRST_ADMIN_EMAIL,
            )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await _seed_admin()

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = create_scheduler()
        scheduler.start()
        logger.info(
            "Auto-close scheduled daily at %02d:00 (%s)",
            settings.AUTO_CLOSE_HOUR,
            settings.TIMEZONE,
        )

    logger.info("🚀 %s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Time clock, attendance metrics and reports",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
