"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in deployment; SQLite (aiosqlite) for local runs and tests.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from portal.core.config import settings

_POSTGRES_POOL = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_recycle": 300,
    "pool_timeout": 30,
}


def build_engine(database_url: str) -> AsyncEngine:
    """Create an engine with pool options suited to the driver behind ``database_url``."""
    if database_url.startswith("sqlite"):
        # An in-memory database only exists inside its one connection
        return create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    options: dict = {"echo": False, "pool_pre_ping": True}
    if "postgresql" in database_url:
        options.update(_POSTGRES_POOL)
    return create_async_engine(database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Handlers keep using ORM objects after commit
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
async_session_factory = build_session_factory(engine)
