"""
Shared test fixtures for the City Portal Admin test suite.

Every test gets its own in-memory SQLite database (aiosqlite + StaticPool);
the request dependency and the audit recorder are both rebound to it.
"""

import itertools
import os
import smtplib
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("EMAIL_USER", None)
os.environ.pop("EMAIL_PASS", None)

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.api.v1.deps import get_db
from portal.core.roles import Role
from portal.core.security import create_access_token, get_password_hash
from portal.db.base import Base
from portal.db.session import build_engine, build_session_factory
from portal.main import app
from portal.models.audit_log import AuditLog
from portal.models.city import City
from portal.models.user import User
from portal.services.audit import AuditRecorder

PASSWORD = "secret123"
_PASSWORD_HASH = get_password_hash(PASSWORD)


class FakeMailer:
    """Collects outgoing mail instead of talking to an SMTP server."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    async def verify(self) -> bool:
        return True

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        if self.fail:
            raise smtplib.SMTPException("SMTP server unavailable")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A fresh schema on a private in-memory database."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def audit(session_factory) -> AuditRecorder:
    return AuditRecorder(session_factory)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
async def async_client(session_factory, audit) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app (no mailer configured)."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.audit = audit
    app.state.mailer = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Factories ───────────────────────────────────────────────────────
@pytest.fixture
def make_city(session_factory):
    async def _make(name: str, description: str | None = None) -> City:
        async with session_factory() as session:
            city = City(name=name, description=description)
            session.add(city)
            await session.commit()
            return city

    return _make


@pytest.fixture
def make_user(session_factory):
    """Insert a user directly. ``role`` may be any string to simulate bad data."""
    counter = itertools.count(1)

    async def _make(
        role: Role | str = Role.USER,
        *,
        cities: tuple | list = (),
        name: str | None = None,
        email: str | None = None,
        cpf: str | None = None,
    ) -> User:
        n = next(counter)
        role_value = getattr(role, "value", role)
        async with session_factory() as session:
            city_rows = [await session.get(City, c.id) for c in cities]
            user = User(
                name=name or f"{role_value.replace('_', ' ').title()} {n}",
                email=email or f"{role_value}{n}@example.com",
                cpf=cpf or f"{n:011d}",
                hashed_password=_PASSWORD_HASH,
                role=role_value,
                cities=city_rows,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


@pytest.fixture
def audit_entries(session_factory):
    """Fetch stored audit entries, oldest first, optionally by action."""

    async def _fetch(action: str | None = None) -> list[AuditLog]:
        stmt = select(AuditLog).order_by(AuditLog.id)
        if action is not None:
            stmt = stmt.where(AuditLog.action == action)
        async with session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    return _fetch


# ── Common actors ───────────────────────────────────────────────────
@pytest.fixture
async def city_a(make_city) -> City:
    return await make_city("Alpha")


@pytest.fixture
async def city_b(make_city) -> City:
    return await make_city("Beta")


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(Role.ADMINISTRATOR, name="Ada Admin")


@pytest.fixture
async def global_manager(make_user) -> User:
    return await make_user(Role.GLOBAL_MANAGER, name="Gil Global")


@pytest.fixture
async def local_manager(make_user, city_a) -> User:
    return await make_user(Role.LOCAL_MANAGER, cities=[city_a], name="Lia Local")


@pytest.fixture
async def member(make_user, city_a) -> User:
    return await make_user(Role.USER, cities=[city_a], name="Uma User")
