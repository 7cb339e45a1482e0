"""
Menu endpoints.

Listing and detail are limited to the caller's assigned cities (administrator
and global manager see every city). Mutations require administrator.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.audit_route import audited
from portal.api.v1.deps import get_audit, get_db, get_identity, require_admin
from portal.core.exceptions import Forbidden, NotFound, ValidationFailed
from portal.core.roles import Identity
from portal.models.audit_log import AuditAction, AuditModule
from portal.models.city import City
from portal.models.menu import Menu, MenuType
from portal.schemas.common import MessageResponse
from portal.schemas.menu import MenuDetail, MenuEnvelope, MenuList, MenuRead, MenuWrite
from portal.services.audit import AuditRecorder
from portal.services.visibility import can_access_city, scope

router = APIRouter(prefix="/menus", tags=["menus"], route_class=audited(AuditModule.MENUS))

_REQUIRED = ("city_id", "type_id", "item", "link")


async def _check_references(
    db: AsyncSession,
    actor: Identity,
    audit: AuditRecorder,
    action: AuditAction,
    city_id: int | None,
    type_id: int | None,
) -> None:
    """Raise ``NotFound`` when the referenced city or menu type does not exist."""
    if city_id is not None and await db.get(City, city_id) is None:
        await audit.record(
            actor, action, AuditModule.MENUS, f"{actor.name} - city not found: {city_id}"
        )
        raise NotFound("City not found")
    if type_id is not None and await db.get(MenuType, type_id) is None:
        await audit.record(
            actor, action, AuditModule.MENUS, f"{actor.name} - menu type not found: {type_id}"
        )
        raise NotFound("Menu type not found")


@router.get("", response_model=MenuList)
async def list_menus(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuList:
    stmt = scope(identity, select(Menu), Menu.city_id).order_by(Menu.city_id, Menu.item, Menu.id)
    result = await db.execute(stmt)
    menus = result.scalars().all()
    await audit.record(identity, AuditAction.LIST, AuditModule.MENUS, f"{identity.name} listed menus")
    return MenuList(data=[MenuRead.model_validate(m) for m in menus])


@router.get("/{menu_id}", response_model=MenuDetail)
async def get_menu(
    menu_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuDetail:
    menu = await db.get(Menu, menu_id)
    if menu is None:
        await audit.record(
            identity, AuditAction.READ_FAILED, AuditModule.MENUS,
            f"{identity.name} - menu not found: {menu_id}",
        )
        raise NotFound("Menu not found")
    if not can_access_city(identity, menu.city_id):
        await audit.record(
            identity, AuditAction.READ_FAILED, AuditModule.MENUS,
            f"{identity.name} - menu {menu_id} belongs to an unassigned city",
        )
        raise Forbidden("You do not have access to this city's menus")

    await audit.record(
        identity, AuditAction.READ, AuditModule.MENUS, f"{identity.name} viewed menu: {menu.item}"
    )
    return MenuDetail(data=MenuRead.model_validate(menu))


@router.post("", response_model=MenuEnvelope, status_code=201)
async def create_menu(
    body: MenuWrite,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuEnvelope:
    missing = [name for name in _REQUIRED if not getattr(body, name)]
    if missing:
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.MENUS,
            f"{actor.name} - menu creation missing: {', '.join(missing)}",
        )
        raise ValidationFailed(f"Required fields: {', '.join(missing)}")

    await _check_references(db, actor, audit, AuditAction.CREATE_FAILED, body.city_id, body.type_id)

    menu = Menu(**body.model_dump())
    db.add(menu)
    await db.commit()
    await db.refresh(menu, attribute_names=["city", "menu_type"])

    await audit.record(
        actor, AuditAction.CREATE, AuditModule.MENUS, f"{actor.name} created menu: {menu.item}"
    )
    return MenuEnvelope(message="Menu created successfully", menu=MenuRead.model_validate(menu))


@router.put("/{menu_id}", response_model=MenuEnvelope)
async def update_menu(
    menu_id: int,
    body: MenuWrite,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MenuEnvelope:
    menu = await db.get(Menu, menu_id)
    if menu is None:
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.MENUS,
            f"{actor.name} - menu not found: {menu_id}",
        )
        raise NotFound("Menu not found")

    changes = body.model_dump(exclude_unset=True)
    blank = [name for name in _REQUIRED if name in changes and not changes[name]]
    if blank:
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.MENUS,
            f"{actor.name} - menu update with empty fields: {', '.join(blank)}",
        )
        raise ValidationFailed(f"Fields cannot be empty: {', '.join(blank)}")

    await _check_references(db, actor, audit, AuditAction.UPDATE_FAILED, body.city_id, body.type_id)

    for field, value in changes.items():
        setattr(menu, field, value)
    await db.commit()
    await db.refresh(menu, attribute_names=["city", "menu_type"])

    await audit.record(
        actor, AuditAction.UPDATE, AuditModule.MENUS, f"{actor.name} updated menu: {menu.item}"
    )
    return MenuEnvelope(message="Menu updated successfully", menu=MenuRead.model_validate(menu))


@router.delete("/{menu_id}", response_model=MessageResponse)
async def delete_menu(
    menu_id: int,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    menu = await db.get(Menu, menu_id)
    if menu is None:
        await audit.record(
            actor, AuditAction.DELETE_FAILED, AuditModule.MENUS,
            f"{actor.name} - menu not found: {menu_id}",
        )
        raise NotFound("Menu not found")

    item = menu.item
    await db.delete(menu)
    await db.commit()

    await audit.record(
        actor, AuditAction.DELETE, AuditModule.MENUS, f"{actor.name} deleted menu: {item}"
    )
    return MessageResponse(message="Menu deleted successfully")
