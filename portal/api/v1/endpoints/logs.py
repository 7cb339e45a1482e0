"""
Audit log endpoints.

- GET /: paginated search (administrator, global manager).
- POST /: append an entry as the calling user (any authenticated user).
- DELETE /clear-list: drop listing entries (administrator).
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query

from portal.api.audit_route import audited
from portal.api.v1.deps import get_audit, get_identity, require_admin, require_user_manager
from portal.core.roles import Identity
from portal.models.audit_log import AuditAction, AuditModule
from portal.schemas.audit import (
    AuditLogCreate,
    AuditLogCreated,
    AuditLogPage,
    AuditLogRead,
    ClearListResponse,
)
from portal.services.audit import AuditLogFilter, AuditRecorder

router = APIRouter(prefix="/logs", tags=["logs"], route_class=audited(AuditModule.LOGS))


@router.get("", response_model=AuditLogPage)
async def search_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    day: date | None = Query(default=None, alias="date", description="Single day (YYYY-MM-DD)"),
    date_start: datetime | None = Query(default=None),
    date_end: datetime | None = Query(default=None),
    user: str | None = Query(default=None, description="Actor name substring"),
    action: str | None = Query(default=None),
    module: str | None = Query(default=None),
    actor: Identity = Depends(require_user_manager),
    audit: AuditRecorder = Depends(get_audit),
) -> AuditLogPage:
    result = await audit.search(
        AuditLogFilter(
            page=page,
            limit=limit,
            date=day,
            date_start=date_start,
            date_end=date_end,
            user=user,
            action=action,
            module=module,
        )
    )
    await audit.record(actor, AuditAction.LIST, AuditModule.LOGS, f"{actor.name} searched logs")
    return AuditLogPage(
        logs=[AuditLogRead.model_validate(entry) for entry in result.logs],
        total=result.total,
        page=result.page,
        pages=result.pages,
    )


@router.post("", response_model=AuditLogCreated, status_code=201)
async def create_log(
    body: AuditLogCreate,
    identity: Identity = Depends(get_identity),
    audit: AuditRecorder = Depends(get_audit),
) -> AuditLogCreated:
    entry = await audit.append(identity, body.action, body.module, body.details)
    await audit.record(
        identity, AuditAction.CREATE, AuditModule.LOGS,
        f"{identity.name} added a log entry manually: {body.action.value} / {body.module.value}",
    )
    return AuditLogCreated(message="Log entry created", log=AuditLogRead.model_validate(entry))


@router.delete("/clear-list", response_model=ClearListResponse)
async def clear_listing_logs(
    actor: Identity = Depends(require_admin),
    audit: AuditRecorder = Depends(get_audit),
) -> ClearListResponse:
    deleted = await audit.clear_listing(actor)
    return ClearListResponse(
        message=f"{deleted} listing log entries deleted", deleted_count=deleted
    )
