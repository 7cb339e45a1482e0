"""
City Portal Admin — application entry point.

This is the **only** file that assembles the app. All business logic
lives in the `api/`, `services/`, `models/` and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from portal.api.v1.api import api_router
from portal.api.v1.endpoints.auth import limiter
from portal.core.config import settings
from portal.core.exceptions import register_exception_handlers
from portal.core.mail import build_mailer
from portal.core.roles import Role
from portal.core.security import get_password_hash
from portal.db.base import Base
from portal.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from portal.models.announcement import Announcement  # noqa: F401
from portal.models.audit_log import AuditLog  # noqa: F401
from portal.models.city import City  # noqa: F401
from portal.models.menu import Menu, MenuType  # noqa: F401
from portal.models.user import User
from portal.services.audit import AuditRecorder

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    # Seed default administrator on first run
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is None:
            admin = User(
                name="System Administrator",
                email=settings.FIRST_ADMIN_EMAIL,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                cpf=settings.FIRST_ADMIN_CPF,
                role=Role.ADMINISTRATOR.value,
            )
            session.add(admin)
            await session.commit()
            logger.info(
                "Default administrator created: %s (password: <redacted>)",
                settings.FIRST_ADMIN_EMAIL,
            )

    # Drop the mailer if the SMTP server rejects us
    mailer = app.state.mailer
    if mailer is not None and not await mailer.verify():
        logger.warning("Password recovery disabled: mail transport unavailable")
        app.state.mailer = None

    logger.info("%s v%s started (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Administrative backend for the municipal portal",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

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

    # Login rate limiting; 429s are rendered by the shared handlers
    application.state.limiter = limiter

    # Injected capabilities
    application.state.audit = AuditRecorder(async_session_factory)
    application.state.mailer = build_mailer(settings)

    application.include_router(api_router, prefix=settings.API_PREFIX)

    return application


app = create_app()
