"""
Audit log recorder.

``record`` is the best-effort path used by every handler: listing actions are
dropped, near-identical repeats inside the dedup window are skipped and any
storage failure is reported to the application log instead of the caller.
The recorder owns its sessions so a failed audit write can never roll back
or poison the request's own transaction.

The dedup check is a read-then-write without locking; two simultaneous
identical actions may both be stored.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.core.config import settings
from portal.models.audit_log import (
    LISTING_MARKER,
    UNKNOWN_USER,
    AuditAction,
    AuditLog,
    AuditModule,
)

logger = logging.getLogger(__name__)


class Actor(Protocol):
    id: int
    name: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class AuditLogFilter:
    page: int = 1
    limit: int = 10
    date: date | None = None
    date_start: datetime | None = None
    date_end: datetime | None = None
    user: str | None = None
    action: str | None = None
    module: str | None = None


@dataclass
class AuditPage:
    logs: list[AuditLog]
    total: int
    page: int
    pages: int


class AuditRecorder:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        dedup_window: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._dedup_window = dedup_window or timedelta(
            seconds=settings.AUDIT_DEDUP_WINDOW_SECONDS
        )
        self._clock = clock

    # ── Writing ─────────────────────────────────────────────────────
    async def record(
        self,
        actor: Actor | None,
        action: AuditAction,
        module: AuditModule,
        details: str = "",
    ) -> AuditLog | None:
        """Persist an entry unless suppressed. Never raises."""
        if action.is_listing:
            return None

        actor_id = actor.id if actor is not None else None
        now = self._clock()
        try:
            async with self._session_factory() as session:
                if await self._is_duplicate(session, actor_id, action, module, now):
                    logger.debug(
                        "Duplicate audit entry skipped: %s %s (actor %s)",
                        action.value, module.value, actor_id,
                    )
                    return None
                entry = self._build(actor, action.value, module.value, details, now)
                session.add(entry)
                await session.commit()
                return entry
        except Exception:
            logger.exception(
                "Failed to record audit entry %s/%s (actor %s)",
                action.value, module.value, actor_id,
            )
            return None

    async def append(
        self,
        actor: Actor | None,
        action: AuditAction,
        module: AuditModule,
        details: str | None = None,
    ) -> AuditLog:
        """Insert an entry verbatim, without suppression; errors propagate."""
        async with self._session_factory() as session:
            entry = self._build(actor, action.value, module.value, details, self._clock())
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
            return entry

    async def _is_duplicate(
        self,
        session: AsyncSession,
        actor_id: int | None,
        action: AuditAction,
        module: AuditModule,
        now: datetime,
    ) -> bool:
        actor_clause = (
            AuditLog.user_id.is_(None) if actor_id is None else AuditLog.user_id == actor_id
        )
        result = await session.execute(
            select(AuditLog.id)
            .where(
                actor_clause,
                AuditLog.action == action.value,
                AuditLog.module == module.value,
                AuditLog.timestamp >= now - self._dedup_window,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _build(
        actor: Actor | None,
        action: str,
        module: str,
        details: str | None,
        now: datetime,
    ) -> AuditLog:
        return AuditLog(
            user_id=actor.id if actor is not None else None,
            user_name=(getattr(actor, "name", None) or UNKNOWN_USER),
            action=action,
            module=module,
            details=details,
            timestamp=now,
        )

    # ── Reading ─────────────────────────────────────────────────────
    async def search(self, filters: AuditLogFilter) -> AuditPage:
        """Page through entries newest-first."""
        conditions = []
        if filters.date is not None:
            conditions.append(
                AuditLog.timestamp
                >= datetime.combine(filters.date, time.min, tzinfo=timezone.utc)
            )
            conditions.append(
                AuditLog.timestamp
                <= datetime.combine(filters.date, time.max, tzinfo=timezone.utc)
            )
        if filters.date_start is not None:
            conditions.append(AuditLog.timestamp >= _as_utc(filters.date_start))
        if filters.date_end is not None:
            conditions.append(AuditLog.timestamp <= _as_utc(filters.date_end))
        if filters.user:
            conditions.append(AuditLog.user_name.icontains(filters.user, autoescape=True))
        if filters.action:
            conditions.append(AuditLog.action == filters.action)
        if filters.module:
            conditions.append(AuditLog.module == filters.module)

        page = max(filters.page, 1)
        limit = max(filters.limit, 1)

        async with self._session_factory() as session:
            total = (
                await session.execute(
                    select(func.count()).select_from(AuditLog).where(*conditions)
                )
            ).scalar_one()
            result = await session.execute(
                select(AuditLog)
                .where(*conditions)
                .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            logs = list(result.scalars().all())

        return AuditPage(logs=logs, total=total, page=page, pages=math.ceil(total / limit))

    # ── Maintenance ─────────────────────────────────────────────────
    async def clear_listing(self, actor: Actor) -> int:
        """Delete every listing entry and record one summary entry."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AuditLog).where(AuditLog.action == LISTING_MARKER)
            )
            await session.commit()
        deleted = result.rowcount or 0
        logger.info("Cleared %d listing audit entries", deleted)
        await self.record(
            actor,
            AuditAction.DELETE,
            AuditModule.LOGS,
            f"Deleted {deleted} listing log entries",
        )
        return deleted
