"""
Audit log model and its closed vocabulary.

Entries are append-only. The only deletion path is the administrator's
bulk clear of listing entries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from portal.db.base import Base

UNKNOWN_USER = "Unknown user"


class AuditModule(str, Enum):
    """Business area an entry belongs to."""

    USERS = "users"
    ANNOUNCEMENTS = "announcements"
    ACCESS = "access"
    AUTH = "auth"
    LOGS = "logs"
    MENUS = "menus"
    MENU_TYPES = "menu_types"
    CITIES = "cities"


class AuditAction(str, Enum):
    """Audited verbs, with their failed / error variants."""

    # Generic CRUD
    CREATE = "create"
    CREATE_FAILED = "create-failed"
    CREATE_ERROR = "create-error"
    UPDATE = "update"
    UPDATE_FAILED = "update-failed"
    UPDATE_ERROR = "update-error"
    DELETE = "delete"
    DELETE_FAILED = "delete-failed"
    DELETE_ERROR = "delete-error"
    READ = "read"
    READ_FAILED = "read-failed"
    READ_ERROR = "read-error"
    LIST = "list"

    # Sessions
    LOGIN = "login"
    LOGIN_FAILED = "login-failed"
    LOGIN_ERROR = "login-error"
    LOGOUT = "logout"
    REFRESH_TOKEN = "refresh-token"
    REFRESH_TOKEN_ERROR = "refresh-token-error"

    # Token verification & authorization
    AUTH_FAILED = "auth-failed"
    AUTH_EXPIRED = "auth-expired"
    AUTH_INVALID = "auth-invalid"
    AUTH_ERROR = "auth-error"
    AUTH_DENIED = "auth-denied"
    ACCESS = "access"

    # Account management
    GET_PROFILE = "get-profile"
    GET_PROFILE_FAILED = "get-profile-failed"
    CHANGE_PASSWORD = "change-password"
    CHANGE_PASSWORD_FAILED = "change-password-failed"
    RECOVER_PASSWORD = "recover-password"
    RECOVER_PASSWORD_FAILED = "recover-password-failed"
    RECOVER_PASSWORD_ERROR = "recover-password-error"
    RESET_PASSWORD = "reset-password"
    RESET_PASSWORD_FAILED = "reset-password-failed"

    @property
    def is_listing(self) -> bool:
        return is_listing_action(self.value)


LISTING_MARKER = AuditAction.LIST.value


def is_listing_action(action: str) -> bool:
    return action == LISTING_MARKER or action.startswith(f"{LISTING_MARKER}-")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_dedup", "user_id", "action", "module", "timestamp"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    # No foreign key: entries outlive the accounts they mention
    user_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    user_name: str = Column(  # type: ignore[assignment]
        String(200), nullable=False, default=UNKNOWN_USER, server_default=UNKNOWN_USER
    )
    action: str = Column(String(50), nullable=False, index=True)  # type: ignore[assignment]
    module: str = Column(String(30), nullable=False, index=True)  # type: ignore[assignment]
    details: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    timestamp: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
