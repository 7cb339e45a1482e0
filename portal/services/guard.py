"""
Role authorization guard.
"""

from __future__ import annotations

from collections.abc import Collection

from portal.core.exceptions import Forbidden, MissingToken
from portal.core.roles import ELEVATED_ROLES, Identity, Role
from portal.models.audit_log import AuditAction, AuditModule
from portal.services.audit import AuditRecorder


async def authorize(
    identity: Identity | None,
    required_roles: Collection[Role],
    audit: AuditRecorder,
) -> Identity:
    """Allow ``identity`` through if it holds one of ``required_roles``.

    Successful checks are not audited; the business action that follows
    records its own entry.
    """
    if identity is None:
        await audit.record(
            None, AuditAction.AUTH_FAILED, AuditModule.ACCESS,
            "Access attempt without an authenticated user",
        )
        raise MissingToken("User not authenticated")

    if identity.role not in required_roles:
        await audit.record(
            identity, AuditAction.AUTH_DENIED, AuditModule.ACCESS,
            f"Access denied for role: {identity.role.value}",
        )
        allowed = ", ".join(r.value for r in required_roles)
        raise Forbidden(f"Access denied. Requires role: {allowed}")

    return identity


async def ensure_can_manage(
    actor: Identity,
    target_role: Role | str | None,
    audit: AuditRecorder,
    *,
    action: AuditAction,
    module: AuditModule = AuditModule.USERS,
    details: str,
) -> None:
    """Stop a global manager from touching an elevated account.

    ``target_role`` is the role of the account being managed, or the role an
    account is being created with / promoted to.
    """
    if actor.role is not Role.GLOBAL_MANAGER:
        return
    if Role.parse(target_role) in ELEVATED_ROLES:
        await audit.record(actor, action, module, details)
        raise Forbidden("Not authorized to manage this role")
