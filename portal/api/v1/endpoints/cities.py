"""
City endpoints.

- GET /public is open; it feeds the registration form.
- GET / is scoped to the caller's assigned cities.
- POST / PUT / DELETE require administrator.
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
from portal.models.city import City
from portal.schemas.city import (
    CityEnvelope,
    CityList,
    CityRead,
    CityRef,
    CityWrite,
    PublicCityList,
)
from portal.schemas.common import MessageResponse
from portal.services.audit import AuditRecorder
from portal.services.catalog import name_taken
from portal.services.visibility import scope

router = APIRouter(prefix="/cities", tags=["cities"], route_class=audited(AuditModule.CITIES))


@router.get("/public", response_model=PublicCityList)
async def list_public_cities(db: AsyncSession = Depends(get_db)) -> PublicCityList:
    result = await db.execute(select(City).order_by(City.name))
    return PublicCityList(data=[CityRef.model_validate(c) for c in result.scalars().all()])


@router.get("", response_model=CityList)
async def list_cities(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> CityList:
    stmt = scope(identity, select(City), City.id).order_by(City.name)
    result = await db.execute(stmt)
    cities = result.scalars().all()
    await audit.record(identity, AuditAction.LIST, AuditModule.CITIES, f"{identity.name} listed cities")
    return CityList(data=[CityRead.model_validate(c) for c in cities])


@router.post("", response_model=CityEnvelope, status_code=201)
async def create_city(
    body: CityWrite,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> CityEnvelope:
    if not body.name:
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.CITIES,
            f"{actor.name} - city creation without a name",
        )
        raise ValidationFailed("City name is required")
    if await name_taken(db, City, body.name):
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.CITIES,
            f"{actor.name} - city already exists: {body.name}",
        )
        raise Conflict("A city with this name already exists")

    city = City(name=body.name, description=body.description)
    db.add(city)
    await db.commit()

    await audit.record(
        actor, AuditAction.CREATE, AuditModule.CITIES, f"{actor.name} created city: {city.name}"
    )
    return CityEnvelope(message="City created successfully", city=CityRead.model_validate(city))


@router.put("/{city_id}", response_model=CityEnvelope)
async def update_city(
    city_id: int,
    body: CityWrite,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> CityEnvelope:
    city = await db.get(City, city_id)
    if city is None:
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.CITIES,
            f"{actor.name} - city not found: {city_id}",
        )
        raise NotFound("City not found")

    if body.name is not None:
        if not body.name:
            raise ValidationFailed("City name must not be empty")
        if await name_taken(db, City, body.name, exclude_id=city.id):
            await audit.record(
                actor, AuditAction.UPDATE_FAILED, AuditModule.CITIES,
                f"{actor.name} - city name already in use: {body.name}",
            )
            raise Conflict("A city with this name already exists")
        city.name = body.name
    if "description" in body.model_fields_set:
        city.description = body.description
    await db.commit()

    await audit.record(
        actor, AuditAction.UPDATE, AuditModule.CITIES, f"{actor.name} updated city: {city.name}"
    )
    return CityEnvelope(message="City updated successfully", city=CityRead.model_validate(city))


@router.delete("/{city_id}", response_model=MessageResponse)
async def delete_city(
    city_id: int,
    actor: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    city = await db.get(City, city_id)
    if city is None:
        await audit.record(
            actor, AuditAction.DELETE_FAILED, AuditModule.CITIES,
            f"{actor.name} - city not found: {city_id}",
        )
        raise NotFound("City not found")

    name = city.name
    await db.delete(city)
    await db.commit()

    await audit.record(
        actor, AuditAction.DELETE, AuditModule.CITIES, f"{actor.name} deleted city: {name}"
    )
    return MessageResponse(message="City deleted successfully")
