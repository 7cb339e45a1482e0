"""Pydantic schemas for the audit log endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from portal.models.audit_log import AuditAction, AuditModule


class AuditLogRead(BaseModel):
    id: int
    user_id: int | None = None
    user_name: str
    action: str
    module: str
    details: str | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class AuditLogCreate(BaseModel):
    action: AuditAction
    module: AuditModule
    details: str | None = None


class AuditLogPage(BaseModel):
    success: bool = True
    logs: list[AuditLogRead]
    total: int
    page: int
    pages: int


class AuditLogCreated(BaseModel):
    success: bool = True
    message: str
    log: AuditLogRead


class ClearListResponse(BaseModel):
    success: bool = True
    message: str
    deleted_count: int
