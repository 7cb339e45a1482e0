"""
Account self-service and user management.

- /profile, /me and /change-password act on the caller's own account.
- /users and /create-user require administrator or global manager; a global
  manager may not touch administrator or global manager accounts.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.audit_route import audited
from portal.api.v1.deps import (
    get_audit,
    get_current_user,
    get_db,
    get_identity,
    require_user_manager,
)
from portal.core.exceptions import Conflict, NotFound, ValidationFailed
from portal.core.roles import Identity
from portal.core.security import get_password_hash, verify_password
from portal.models.audit_log import AuditAction, AuditModule
from portal.models.user import User
from portal.schemas.auth import ChangePasswordRequest
from portal.schemas.common import MessageResponse
from portal.schemas.user import SelfUpdate, UserCreate, UserEnvelope, UserList, UserRead, UserUpdate
from portal.services.accounts import find_conflicts, resolve_cities
from portal.services.audit import AuditRecorder
from portal.services.guard import ensure_can_manage

router = APIRouter(prefix="/auth", tags=["users"], route_class=audited(AuditModule.USERS))
logger = logging.getLogger(__name__)


def _conflict_message(conflicts: dict[str, bool]) -> str:
    taken = [field for field, hit in conflicts.items() if hit]
    return f"Already registered: {', '.join(taken)}"


# ── Own account ─────────────────────────────────────────────────────
@router.get("/profile", response_model=UserEnvelope)
async def get_profile(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserEnvelope:
    user = await db.get(User, identity.id)
    if user is None:
        await audit.record(
            identity, AuditAction.GET_PROFILE_FAILED, AuditModule.USERS,
            f"Profile not found: {identity.id}",
        )
        raise NotFound("User not found")

    await audit.record(
        identity, AuditAction.GET_PROFILE, AuditModule.USERS,
        f"{identity.name} viewed their profile",
    )
    return UserEnvelope(data=UserRead.model_validate(user))


@router.get("/me", response_model=UserEnvelope)
async def read_me(user: User = Depends(get_current_user)) -> UserEnvelope:
    return UserEnvelope(data=UserRead.model_validate(user))


@router.put("/me", response_model=UserEnvelope)
async def update_me(
    body: SelfUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserEnvelope:
    """Update the caller's own contact details. Role and cities are not editable here."""
    changes = body.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != user.email:
        conflicts = await find_conflicts(db, changes["email"], None, exclude_id=user.id)
        if conflicts["email"]:
            await audit.record(
                user, AuditAction.UPDATE_FAILED, AuditModule.USERS,
                f"{user.name} - email already in use: {changes['email']}",
            )
            raise Conflict("Email already in use", extra={"conflicts": conflicts})

    for field, value in changes.items():
        if field in ("name", "email") and value is None:
            continue
        setattr(user, field, value)
    await db.commit()

    await audit.record(
        user, AuditAction.UPDATE, AuditModule.USERS, f"{user.name} updated their profile"
    )
    return UserEnvelope(message="Profile updated", data=UserRead.model_validate(user))


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    email = user.email
    await db.delete(user)
    await db.commit()

    await audit.record(user, AuditAction.DELETE, AuditModule.USERS, f"Account deleted: {email}")
    logger.info("User %s deleted their account", email)
    return MessageResponse(message="Account deleted")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    if not verify_password(body.current_password, user.hashed_password):
        await audit.record(
            user, AuditAction.CHANGE_PASSWORD_FAILED, AuditModule.USERS,
            f"Incorrect current password for: {user.email}",
        )
        raise ValidationFailed("Current password is incorrect")
    if not body.new_password:
        await audit.record(
            user, AuditAction.CHANGE_PASSWORD_FAILED, AuditModule.USERS,
            f"Empty new password for: {user.email}",
        )
        raise ValidationFailed("New password must not be empty")

    user.hashed_password = get_password_hash(body.new_password)
    await db.commit()

    await audit.record(
        user, AuditAction.CHANGE_PASSWORD, AuditModule.USERS,
        f"Password changed: {user.email}",
    )
    return MessageResponse(message="Password changed successfully")


# ── User management ─────────────────────────────────────────────────
@router.get("/users", response_model=UserList)
async def list_users(
    actor: Identity = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserList:
    result = await db.execute(select(User).order_by(User.name, User.id))
    users = result.scalars().all()
    await audit.record(actor, AuditAction.LIST, AuditModule.USERS, f"{actor.name} listed users")
    return UserList(data=[UserRead.model_validate(u) for u in users])


@router.post("/create-user", response_model=UserEnvelope, status_code=201)
async def create_user(
    body: UserCreate,
    actor: Identity = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserEnvelope:
    await ensure_can_manage(
        actor,
        body.role,
        audit,
        action=AuditAction.CREATE_FAILED,
        details=f"{actor.name} attempted to create a user with role {body.role.value}",
    )

    conflicts = await find_conflicts(db, body.email, body.cpf)
    if any(conflicts.values()):
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.USERS,
            f"{actor.name} - {_conflict_message(conflicts)} ({body.email})",
        )
        raise Conflict("User already exists", extra={"conflicts": conflicts})

    cities, missing = await resolve_cities(db, body.cities)
    if missing:
        await audit.record(
            actor, AuditAction.CREATE_FAILED, AuditModule.USERS,
            f"{actor.name} - unknown cities: {sorted(missing)}",
        )
        raise NotFound(f"City not found: {sorted(missing)}")

    user = User(
        name=body.name,
        email=body.email,
        hashed_password=get_password_hash(body.password),
        cpf=body.cpf,
        role=body.role.value,
        address=body.address,
        phone=body.phone,
        photo=body.photo,
        cities=cities,
    )
    db.add(user)
    await db.commit()

    await audit.record(
        actor, AuditAction.CREATE, AuditModule.USERS,
        f"{actor.name} created user: {user.email} ({user.role})",
    )
    return UserEnvelope(message="User created successfully", data=UserRead.model_validate(user))


@router.put("/users/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: int,
    payload: dict[str, Any] = Body(default_factory=dict),
    actor: Identity = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserEnvelope:
    """Update another user.

    The body is validated only after the target has been found and the
    caller cleared to manage it, so a protected target is refused whatever
    the payload contains.
    """
    user = await db.get(User, user_id)
    if user is None:
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.USERS,
            f"{actor.name} - user not found: {user_id}",
        )
        raise NotFound("User not found")

    await ensure_can_manage(
        actor,
        user.role,
        audit,
        action=AuditAction.UPDATE_FAILED,
        details=f"{actor.name} attempted to update elevated user: {user.email}",
    )

    try:
        body = UserUpdate.model_validate(payload)
    except ValidationError as exc:
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.USERS,
            f"{actor.name} - invalid data for user: {user.email}",
        )
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        raise ValidationFailed(extra={"errors": errors}) from exc

    if body.role is not None:
        await ensure_can_manage(
            actor,
            body.role,
            audit,
            action=AuditAction.UPDATE_FAILED,
            details=f"{actor.name} attempted to promote {user.email} to {body.role.value}",
        )

    conflicts = await find_conflicts(db, body.email, body.cpf, exclude_id=user.id)
    if any(conflicts.values()):
        await audit.record(
            actor, AuditAction.UPDATE_FAILED, AuditModule.USERS,
            f"{actor.name} - {_conflict_message(conflicts)} ({user.email})",
        )
        raise Conflict("Email or CPF already in use", extra={"conflicts": conflicts})

    if body.cities is not None:
        cities, missing = await resolve_cities(db, body.cities)
        if missing:
            await audit.record(
                actor, AuditAction.UPDATE_FAILED, AuditModule.USERS,
                f"{actor.name} - unknown cities: {sorted(missing)}",
            )
            raise NotFound(f"City not found: {sorted(missing)}")
        user.cities = cities

    changes = body.model_dump(exclude_unset=True, exclude={"cities", "password", "role"})
    for field, value in changes.items():
        if field in ("name", "email", "cpf") and value is None:
            continue
        setattr(user, field, value)
    if body.role is not None:
        user.role = body.role.value
    if body.password:
        user.hashed_password = get_password_hash(body.password)
    await db.commit()

    await audit.record(
        actor, AuditAction.UPDATE, AuditModule.USERS, f"{actor.name} updated user: {user.email}"
    )
    return UserEnvelope(message="User updated successfully", data=UserRead.model_validate(user))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    actor: Identity = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    user = await db.get(User, user_id)
    if user is None:
        await audit.record(
            actor, AuditAction.DELETE_FAILED, AuditModule.USERS,
            f"{actor.name} - user not found: {user_id}",
        )
        raise NotFound("User not found")

    await ensure_can_manage(
        actor,
        user.role,
        audit,
        action=AuditAction.DELETE_FAILED,
        details=f"{actor.name} attempted to delete elevated user: {user.email}",
    )

    email = user.email
    await db.delete(user)
    await db.commit()

    await audit.record(
        actor, AuditAction.DELETE, AuditModule.USERS, f"{actor.name} deleted user: {email}"
    )
    return MessageResponse(message="User deleted successfully")
