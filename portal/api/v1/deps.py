"""
FastAPI dependencies — database session, audit recorder, mailer and auth guards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import UnknownSubject
from portal.core.mail import SmtpMailer
from portal.core.roles import Identity, Role
from portal.db.session import async_session_factory
from portal.models.user import User
from portal.services.audit import AuditRecorder
from portal.services.credentials import CredentialVerifier
from portal.services.guard import authorize


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Injected capabilities ───────────────────────────────────────────
def get_audit(request: Request) -> AuditRecorder:
    return request.app.state.audit


def get_mailer(request: Request) -> SmtpMailer | None:
    """The configured mailer, or ``None`` when password recovery is disabled."""
    return request.app.state.mailer


# ── Auth dependencies ───────────────────────────────────────────────
async def get_identity(
    request: Request,
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> Identity:
    """Verify the bearer token and resolve the caller."""
    identity = await CredentialVerifier(db, audit).verify(authorization)
    request.state.identity = identity
    return identity


async def get_current_user(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The caller's ``User`` row (served from the session's identity map)."""
    user = await db.get(User, identity.id)
    if user is None:
        raise UnknownSubject()
    return user


def require_roles(*roles: Role):
    """Dependency factory that admits only callers holding one of ``roles``."""

    async def checker(
        identity: Identity = Depends(get_identity),
        audit: AuditRecorder = Depends(get_audit),
    ) -> Identity:
        return await authorize(identity, roles, audit)

    return checker


require_admin = require_roles(Role.ADMINISTRATOR)
require_user_manager = require_roles(Role.ADMINISTRATOR, Role.GLOBAL_MANAGER)
require_local_manager = require_roles(
    Role.ADMINISTRATOR, Role.GLOBAL_MANAGER, Role.LOCAL_MANAGER
)
