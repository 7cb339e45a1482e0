"""
Menu type endpoints — readable by any authenticated user, managed by the
administrator.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.audit_route import audited
from portal.api.v1.deps import get_audit, get_db, get_identity, require_admin
from portal.core.exceptions import Conflict, NotFound, ValidationFailed
from portal.core.roles import Identity
from portal.models.audit_log import AuditAction, AuditModule
from portal.models.menu import MenuType
from portal.schemas.city import (
    MenuTypeDetail,
    MenuTypeEnvelope,
    MenuTypeList,
    MenuTypeRead,
    MenuTypeWrite,
)
from portal.schemas.common import MessageResponse
from portal.services.audit import AuditRecorder
from portal.services.catalog import name_taken

router = APIRouter(
    prefix="/menu-types", tags=["menu-types"], route_class=audited(AuditModule.MENU_TYPES)
)


@router.get("", response_model=MenuTypeList)
async def list_menu_types(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuTypeList:
    result = await db.execute(select(MenuType).order_by(MenuType.name))
    await audit.record(
        identity, AuditAction.LIST, AuditModule.MENU_TYPES, f"{identity.name} listed menu types"
    )
    return MenuTypeList(data=[MenuTypeRead.model_validate(t) for t in result.scalars().all()])


@router.get("/{type_id}", response_model=MenuTypeDetail)
async def get_menu_type(
    type_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuTypeDetail:
    menu_type = await db.get(MenuType, type_id)
    if menu_type is None:
        await audit.record(
            identity, AuditAction.READ_FAILED, AuditModule.MENU_TYPES,
            f"{identity.name} - menu type not found: {type_id}",
        )
        raise NotFound("Menu type not found")

    await audit.record(
        identity, AuditAction.READ, AuditModule.MENU_TYPES,
        f"{identity.name} viewed menu type: {menu_type.name}",
    )
    return MenuTypeDetail(data=MenuTypeRead.model_validate(menu_type))


@router.post("", response_model=MenuTypeEnvelope, status_code=201)
async def create_menu_type(
    body: MenuTypeWrite,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuTypeEnvelope:
    if not body.name:
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.MENU_TYPES,
            f"{actor.name} - menu type creation without a name",
        )
        raise ValidationFailed("Menu type name is required")
    if await name_taken(db, MenuType, body.name):
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.MENU_TYPES,
            f"{actor.name} - menu type already exists: {body.name}",
        )
        raise Conflict("A menu type with this name already exists")

    menu_type = MenuType(name=body.name, description=body.description)
    db.add(menu_type)
    await db.commit()

    await audit.record(
        actor, AuditAction.CREATE, AuditModule.MENU_TYPES,
        f"{actor.name} created menu type: {menu_type.name}",
    )
    return MenuTypeEnvelope(
        message="Menu type created successfully", menu_type=MenuTypeRead.model_validate(menu_type)
    )


@router.put("/{type_id}", response_model=MenuTypeEnvelope)
async def update_menu_type(
    type_id: int,
    body: MenuTypeWrite,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuTypeEnvelope:
    menu_type = await db.get(MenuType, type_id)
    if menu_type is None:
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.MENU_TYPES,
            f"{actor.name} - menu type not found: {type_id}",
        )
        raise NotFound("Menu type not found")

    if body.name is not None:
        if not body.name:
            raise ValidationFailed("Menu type name must not be empty")
        if await name_taken(db, MenuType, body.name, exclude_id=menu_type.id):
            await audit.record(
                actor, AuditAction.UPDATE_FAILED, AuditModule.MENU_TYPES,
                f"{actor.name} - menu type name already in use: {body.name}",
            )
            raise Conflict("A menu type with this name already exists")
        menu_type.name = body.name
    if "description" in body.model_fields_set:
        menu_type.description = body.description
    await db.commit()

    await audit.record(
        actor, AuditAction.UPDATE, AuditModule.MENU_TYPES,
        f"{actor.name} updated menu type: {menu_type.name}",
    )
    return MenuTypeEnvelope(
        message="Menu type updated successfully", menu_type=MenuTypeRead.model_validate(menu_type)
    )


@router.delete("/{type_id}", response_model=MessageResponse)
async def delete_menu_type(
    type_id: int,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    menu_type = await db.get(MenuType, type_id)
    if menu_type is None:
        await audit.record(
            actor, AuditAction.DELETE_FAILED, AuditModule.MENU_TYPES,
            f"{actor.name} - menu type not found: {type_id}",
        )
        raise NotFound("Menu type not found")

    name = menu_type.name
    await db.delete(menu_type)
    await db.commit()

    await audit.record(
        actor, AuditAction.DELETE, AuditModule.MENU_TYPES, f"{actor.name} deleted menu type: {name}"
    )
    return MessageResponse(message="Menu type deleted successfully")
