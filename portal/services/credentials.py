"""
Credential verification — bearer tokens for every protected request and
password login.

Every failure branch writes an audit entry before raising; the recorder
never raises, so the authentication error itself always reaches the caller.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import (
    InvalidCredentials,
    InvalidToken,
    MissingToken,
    TokenExpired,
    UnknownSubject,
    ValidationFailed,
)
from portal.core.roles import Identity, Role
from portal.core.security import (
    create_access_token,
    decode_access_token,
    subject_id,
    verify_password,
)
from portal.models.audit_log import AuditAction, AuditModule
from portal.models.user import User
from portal.services.audit import AuditRecorder

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "
_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def extract_bearer(authorization: str | None) -> str:
    """Return the token from a ``Bearer <token>`` header value."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise MissingToken()
    token = authorization[len(_BEARER_PREFIX):].strip()
    if not token:
        raise MissingToken()
    return token


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_cpf(value: str) -> str:
    return re.sub(r"\D", "", value)


def normalize_identifier(identifier: str) -> str:
    """Emails are trimmed and lower-cased; anything else is read as a CPF."""
    if _EMAIL_RE.search(identifier):
        return normalize_email(identifier)
    return normalize_cpf(identifier)


class CredentialVerifier:
    def __init__(self, db: AsyncSession, audit: AuditRecorder) -> None:
        self._db = db
        self._audit = audit

    async def verify(self, authorization: str | None) -> Identity:
        """Resolve a raw ``Authorization`` header to the caller's identity."""
        try:
            token = extract_bearer(authorization)
        except MissingToken:
            await self._audit.record(
                None, AuditAction.AUTH_FAILED, AuditModule.ACCESS,
                "Access attempt without token",
            )
            raise

        try:
            payload = decode_access_token(token)
            user_id = subject_id(payload)
        except TokenExpired as exc:
            await self._audit.record(
                None, AuditAction.AUTH_EXPIRED, AuditModule.ACCESS,
                f"Authentication failed: {exc.error}",
            )
            raise
        except InvalidToken as exc:
            await self._audit.record(
                None, AuditAction.AUTH_INVALID, AuditModule.ACCESS,
                f"Authentication failed: {exc.error}",
            )
            raise

        try:
            user = await self._db.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.error("User lookup failed during token verification: %s", exc)
            await self._audit.record(
                None, AuditAction.AUTH_ERROR, AuditModule.ACCESS,
                f"Authentication error: {exc}",
            )
            raise InvalidToken("Authentication error", error=str(exc)) from exc

        if user is None:
            await self._audit.record(
                None, AuditAction.AUTH_FAILED, AuditModule.ACCESS,
                f"User not found for token subject: {user_id}",
            )
            raise UnknownSubject()

        try:
            return Identity.from_user(user)
        except ValueError:
            await self._audit.record(
                user, AuditAction.AUTH_INVALID, AuditModule.ACCESS,
                f"Invalid role: {user.role}",
            )
            raise InvalidToken("Invalid user role")

    async def login(self, identifier: str | None, password: str | None) -> tuple[User, str]:
        """Check a password login and return the user with a fresh token."""
        if not identifier or not password:
            await self._audit.record(
                None, AuditAction.LOGIN_FAILED, AuditModule.ACCESS,
                f"Login attempt with incomplete data: {identifier or 'no identifier'}",
            )
            raise ValidationFailed("Email/CPF and password are required")

        normalized = normalize_identifier(identifier)
        try:
            user = None
            if normalized:
                result = await self._db.execute(
                    select(User).where(or_(User.email == normalized, User.cpf == normalized))
                )
                user = result.scalars().first()
        except SQLAlchemyError as exc:
            await self._audit.record(
                None, AuditAction.LOGIN_ERROR, AuditModule.ACCESS,
                f"Login error: {exc}",
            )
            raise

        if user is None:
            await self._audit.record(
                None, AuditAction.LOGIN_FAILED, AuditModule.ACCESS,
                f"User not found: {normalized or identifier}",
            )
            raise InvalidCredentials()

        if not verify_password(password, user.hashed_password):
            await self._audit.record(
                user, AuditAction.LOGIN_FAILED, AuditModule.ACCESS,
                f"Incorrect password for: {user.email}",
            )
            raise InvalidCredentials()

        if Role.parse(user.role) is None:
            await self._audit.record(
                user, AuditAction.LOGIN_FAILED, AuditModule.ACCESS,
                f"Invalid role: {user.role} ({user.email})",
            )
            raise ValidationFailed("Invalid user role")

        await self._audit.record(
            user, AuditAction.LOGIN, AuditModule.ACCESS,
            f"Successful login: {user.email}",
        )
        logger.info("User %s logged in", user.id)
        return user, create_access_token(user)
