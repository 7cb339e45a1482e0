"""
Announcement endpoints.

Any authenticated user may publish into one of their assigned cities; only
the author or an administrator may change or remove an announcement.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.audit_route import audited
from portal.api.v1.deps import get_audit, get_db, get_identity
from portal.core.exceptions import Forbidden, NotFound, ValidationFailed
from portal.core.roles import Identity, Role
from portal.models.announcement import Announcement
from portal.models.audit_log import AuditAction, AuditModule
from portal.models.city import City
from portal.schemas.announcement import (
    AnnouncementCreate,
    AnnouncementEnvelope,
    AnnouncementList,
    AnnouncementRead,
    AnnouncementUpdate,
)
from portal.schemas.common import MessageResponse
from portal.services.audit import AuditRecorder
from portal.services.visibility import (
    announcement_visibility,
    can_access_city,
    can_read_announcement,
)

router = APIRouter(
    prefix="/announcements",
    tags=["announcements"],
    route_class=audited(AuditModule.ANNOUNCEMENTS),
)

_TEXT_FIELDS = ("title", "message", "background_color", "text_color", "icon")


async def _check_target_city(
    db: AsyncSession,
    identity: Identity,
    audit: AuditRecorder,
    action: AuditAction,
    city_id: int,
) -> None:
    if await db.get(City, city_id) is None:
        await audit.record(
            identity, action, AuditModule.ANNOUNCEMENTS,
            f"{identity.name} - city not found: {city_id}",
        )
        raise NotFound("City not found")
    if not can_access_city(identity, city_id):
        await audit.record(
            identity, action, AuditModule.ANNOUNCEMENTS,
            f"{identity.name} - city {city_id} is not assigned to them",
        )
        raise Forbidden("You can only publish announcements for your own cities")


async def _load_owned(
    db: AsyncSession,
    identity: Identity,
    audit: AuditRecorder,
    action: AuditAction,
    announcement_id: int,
) -> Announcement:
    announcement = await db.get(Announcement, announcement_id)
    if announcement is None:
        await audit.record(
            identity, action, AuditModule.ANNOUNCEMENTS,
            f"{identity.name} - announcement not found: {announcement_id}",
        )
        raise NotFound("Announcement not found")
    if announcement.created_by != identity.id and identity.role is not Role.ADMINISTRATOR:
        await audit.record(
            identity, action, AuditModule.ANNOUNCEMENTS,
            f"{identity.name} - not the author of announcement {announcement_id}",
        )
        raise Forbidden("Only the author or an administrator can modify this announcement")
    return announcement


@router.get("", response_model=AnnouncementList)
async def list_announcements(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> AnnouncementList:
    stmt = select(Announcement)
    clause = announcement_visibility(identity)
    if clause is not None:
        stmt = stmt.where(clause)
    result = await db.execute(
        stmt.order_by(Announcement.created_at.desc(), Announcement.id.desc())
    )
    await audit.record(
        identity, AuditAction.LIST, AuditModule.ANNOUNCEMENTS,
        f"{identity.name} listed announcements",
    )
    return AnnouncementList(
        data=[AnnouncementRead.model_validate(a) for a in result.scalars().all()]
    )


@router.get("/{announcement_id}", response_model=AnnouncementEnvelope)
async def get_announcement(
    announcement_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> AnnouncementEnvelope:
    announcement = await db.get(Announcement, announcement_id)
    if announcement is None:
        await audit.record(
            identity, AuditAction.READ_FAILED, AuditModule.ANNOUNCEMENTS,
            f"{identity.name} - announcement not found: {announcement_id}",
        )
        raise NotFound("Announcement not found")
    if not can_read_announcement(identity, announcement):
        await audit.record(
            identity, AuditAction.READ_FAILED, AuditModule.ANNOUNCEMENTS,
            f"{identity.name} - announcement {announcement_id} is outside their cities",
        )
        raise Forbidden("You do not have access to this announcement")

    await audit.record(
        identity, AuditAction.READ, AuditModule.ANNOUNCEMENTS,
        f"{identity.name} viewed announcement: {announcement.title}",
    )
    return AnnouncementEnvelope(data=AnnouncementRead.model_validate(announcement))


@router.post("", response_model=AnnouncementEnvelope, status_code=201)
async def create_announcement(
    body: AnnouncementCreate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> AnnouncementEnvelope:
    await _check_target_city(db, identity, audit, AuditAction.CREATE_FAILED, body.city_id)

    announcement = Announcement(**body.model_dump(), created_by=identity.id)
    db.add(announcement)
    await db.commit()

    await audit.record(
        identity, AuditAction.CREATE, AuditModule.ANNOUNCEMENTS,
        f"{identity.name} created announcement: {announcement.title}",
    )
    return AnnouncementEnvelope(
        message="Announcement created successfully",
        data=AnnouncementRead.model_validate(announcement),
    )


@router.put("/{announcement_id}", response_model=AnnouncementEnvelope)
async def update_announcement(
    announcement_id: int,
    body: AnnouncementUpdate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> AnnouncementEnvelope:
    announcement = await _load_owned(
        db, identity, audit, AuditAction.UPDATE_FAILED, announcement_id
    )

    changes = body.model_dump(exclude_unset=True)
    for field in _TEXT_FIELDS:
        if field in changes and not (changes[field] or "").strip():
            await audit.record(
                identity, AuditAction.UPDATE_FAILED, AuditModule.ANNOUNCEMENTS,
                f"{identity.name} - empty {field} for announcement {announcement_id}",
            )
            raise ValidationFailed("All fields are required")
    if changes.get("city_id") is not None and changes["city_id"] != announcement.city_id:
        await _check_target_city(
            db, identity, audit, AuditAction.UPDATE_FAILED, changes["city_id"]
        )

    for field, value in changes.items():
        if field in ("city_id", "is_public") and value is None:
            continue
        setattr(announcement, field, value.strip() if field in _TEXT_FIELDS else value)
    await db.commit()

    await audit.record(
        identity, AuditAction.UPDATE, AuditModule.ANNOUNCEMENTS,
        f"{identity.name} updated announcement: {announcement.title}",
    )
    return AnnouncementEnvelope(
        message="Announcement updated successfully",
        data=AnnouncementRead.model_validate(announcement),
    )


@router.delete("/{announcement_id}", response_model=MessageResponse)
async def delete_announcement(
    announcement_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    announcement = await _load_owned(
        db, identity, audit, AuditAction.DELETE_FAILED, announcement_id
    )

    title = announcement.title
    await db.delete(announcement)
    await db.commit()

    await audit.record(
        identity, AuditAction.DELETE, AuditModule.ANNOUNCEMENTS,
        f"{identity.name} deleted announcement: {title}",
    )
    return MessageResponse(message="Announcement deleted successfully")
