"""
Auth endpoints — registration, login, token refresh, password recovery and
role-gated area probes.
"""

import logging
import smtplib
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.audit_route import audited
from portal.api.v1.deps import (
    get_audit,
    get_db,
    get_mailer,
    require_admin,
    require_local_manager,
    require_user_manager,
)
from portal.core.config import settings
from portal.core.exceptions import (
    Conflict,
    Forbidden,
    Internal,
    InvalidToken,
    MissingToken,
    NotFound,
    ServiceUnavailable,
    TokenExpired,
    ValidationFailed,
)
from portal.core.mail import SmtpMailer
from portal.core.roles import Identity, Role
from portal.core.security import (
    create_access_token,
    create_reset_token,
    decode_access_token_for_refresh,
    decode_reset_token,
    get_password_hash,
    subject_id,
)
from portal.models.audit_log import AuditAction, AuditModule
from portal.models.user import User
from portal.schemas.auth import (
    AreaResponse,
    AreaUser,
    LoginRequest,
    RecoverPasswordConfirm,
    RecoverPasswordRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from portal.schemas.common import MessageResponse
from portal.schemas.user import UserCreate, UserRead, UserTokenResponse
from portal.services.accounts import find_conflicts, resolve_cities
from portal.services.audit import AuditRecorder
from portal.services.credentials import CredentialVerifier, extract_bearer, normalize_email
from portal.services.guard import ensure_can_manage

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"], route_class=audited(AuditModule.ACCESS))
logger = logging.getLogger(__name__)


# ── Registration & login ────────────────────────────────────────────
@router.post("/register", response_model=UserTokenResponse, status_code=201)
async def register(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserTokenResponse:
    """Public self-registration. Only the ``user`` role may be requested."""
    if body.role is not Role.USER:
        await audit.record(
            None, AuditAction.CREATE_FAILED, AuditModule.USERS,
            f"Self-registration attempted with role {body.role.value}: {body.email}",
        )
        raise Forbidden("Self-registration is limited to the user role")

    conflicts = await find_conflicts(db, body.email, body.cpf)
    if any(conflicts.values()):
        await audit.record(
            None, AuditAction.CREATE_FAILED, AuditModule.USERS,
            f"Registration conflict for: {body.email}",
        )
        raise Conflict("User already exists", extra={"conflicts": conflicts})

    cities, missing = await resolve_cities(db, body.cities)
    if missing:
        await audit.record(
            None, AuditAction.CREATE_FAILED, AuditModule.USERS,
            f"Registration with unknown cities: {sorted(missing)}",
        )
        raise ValidationFailed(f"Unknown city id(s): {sorted(missing)}")

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
        user, AuditAction.CREATE, AuditModule.USERS, f"New user created: {user.email}"
    )
    return UserTokenResponse(user=UserRead.model_validate(user), token=create_access_token(user))


@router.post("/login", response_model=UserTokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> UserTokenResponse:
    """Authenticate with email or CPF plus password."""
    user, token = await CredentialVerifier(db, audit).login(body.login, body.password)
    return UserTokenResponse(user=UserRead.model_validate(user), token=token)


@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> TokenResponse:
    """Issue a new token. The signature must verify; expiry is ignored."""
    try:
        payload = decode_access_token_for_refresh(extract_bearer(authorization))
        user_id = subject_id(payload)
    except (MissingToken, InvalidToken) as exc:
        await audit.record(
            None, AuditAction.REFRESH_TOKEN_ERROR, AuditModule.ACCESS,
            f"Token refresh failed: {exc.error or exc.message}",
        )
        raise

    user = await db.get(User, user_id)
    if user is None:
        await audit.record(
            None, AuditAction.REFRESH_TOKEN_ERROR, AuditModule.ACCESS,
            f"Token refresh for unknown user: {user_id}",
        )
        raise NotFound("User not found")
    if Role.parse(user.role) is None:
        await audit.record(
            user, AuditAction.REFRESH_TOKEN_ERROR, AuditModule.ACCESS,
            f"Token refresh with invalid role: {user.role}",
        )
        raise InvalidToken("Invalid user role")

    await audit.record(
        user, AuditAction.REFRESH_TOKEN, AuditModule.ACCESS, f"{user.name} refreshed the token"
    )
    return TokenResponse(token=create_access_token(user))


# ── Password recovery ───────────────────────────────────────────────
@router.post("/recover-password", response_model=MessageResponse)
async def recover_password(
    body: RecoverPasswordRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
    mailer: SmtpMailer | None = Depends(get_mailer),
) -> MessageResponse:
    """Email a one-hour reset link to the account owner."""
    if not body.email:
        await audit.record(
            None, AuditAction.RECOVER_PASSWORD_FAILED, AuditModule.ACCESS,
            "Password recovery attempt without email",
        )
        raise ValidationFailed("Email is required")

    email = normalize_email(body.email)
    if mailer is None:
        await audit.record(
            None, AuditAction.RECOVER_PASSWORD_FAILED, AuditModule.ACCESS,
            f"Password recovery disabled: {email}",
        )
        raise ServiceUnavailable(
            "Password recovery is disabled. Configure the mail credentials on the server."
        )

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        await audit.record(
            None, AuditAction.RECOVER_PASSWORD_FAILED, AuditModule.ACCESS,
            f"Email not found: {email}",
        )
        raise NotFound("Email not found")

    token, expires = create_reset_token(user)
    user.reset_token = token
    user.reset_token_expires = expires
    await db.commit()

    reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
    try:
        await mailer.send(
            email,
            f"Password recovery - {settings.PROJECT_NAME}",
            f"Follow this link to reset your password: {reset_url}\n\n"
            "This link expires in 1 hour.",
            f'<p>Follow this link to reset your password: <a href="{reset_url}">Reset password</a></p>'
            "<p>This link expires in 1 hour.</p>",
        )
    except (OSError, smtplib.SMTPException) as exc:
        logger.error("Failed to send recovery email to %s: %s", email, exc)
        await audit.record(
            user, AuditAction.RECOVER_PASSWORD_ERROR, AuditModule.ACCESS,
            f"Error sending recovery email to: {email} - {exc}",
        )
        raise Internal("Error sending recovery email", error=str(exc)) from exc

    await audit.record(
        user, AuditAction.RECOVER_PASSWORD, AuditModule.ACCESS,
        f"Recovery instructions sent to: {email}",
    )
    return MessageResponse(message="Recovery instructions sent to your email.")


@router.post("/recover-password/confirm", response_model=MessageResponse)
async def confirm_password_recovery(
    body: RecoverPasswordConfirm,
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
) -> MessageResponse:
    """Set a new password using the emailed reset token (single use)."""
    try:
        user_id = subject_id(decode_reset_token(body.token))
    except InvalidToken as exc:
        await audit.record(
            None, AuditAction.RESET_PASSWORD_FAILED, AuditModule.ACCESS,
            f"Invalid reset token: {exc.error or exc.message}",
        )
        raise

    user = await db.get(User, user_id)
    if user is None or user.reset_token != body.token:
        await audit.record(
            None, AuditAction.RESET_PASSWORD_FAILED, AuditModule.ACCESS,
            f"Reset token not recognised for user: {user_id}",
        )
        raise InvalidToken("Invalid or already used reset token")
    expires = user.reset_token_expires
    if expires is not None and expires.tzinfo is None:
        # SQLite hands back naive datetimes
        expires = expires.replace(tzinfo=timezone.utc)
    if expires is None or expires <= datetime.now(timezone.utc):
        await audit.record(
            user, AuditAction.RESET_PASSWORD_FAILED, AuditModule.ACCESS,
            f"Expired reset token for: {user.email}",
        )
        raise TokenExpired("Reset link has expired")
    if not body.password:
        raise ValidationFailed("Password is required")

    user.hashed_password = get_password_hash(body.password)
    user.reset_token = None
    user.reset_token_expires = None
    await db.commit()

    await audit.record(
        user, AuditAction.RESET_PASSWORD, AuditModule.ACCESS,
        f"Password reset via recovery link: {user.email}",
    )
    return MessageResponse(message="Password reset successfully.")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit),
    actor: Identity = Depends(require_user_manager),
) -> MessageResponse:
    """Set another user's password (administrator / global manager)."""
    if not body.user_id or not body.password:
        await audit.record(
            actor, AuditAction.RESET_PASSWORD_FAILED, AuditModule.ACCESS,
            f"{actor.name} - password reset attempt without user_id or password",
        )
        raise ValidationFailed("user_id and password are required")

    user = await db.get(User, body.user_id)
    if user is None:
        await audit.record(
            actor, AuditAction.RESET_PASSWORD_FAILED, AuditModule.ACCESS,
            f"{actor.name} - user not found: {body.user_id}",
        )
        raise NotFound("User not found")

    await ensure_can_manage(
        actor,
        user.role,
        audit,
        action=AuditAction.RESET_PASSWORD_FAILED,
        module=AuditModule.ACCESS,
        details=f"{actor.name} attempted to reset the password of an elevated user",
    )

    user.hashed_password = get_password_hash(body.password)
    await db.commit()

    await audit.record(
        actor, AuditAction.RESET_PASSWORD, AuditModule.ACCESS,
        f"{actor.name} reset the password for user: {user.email}",
    )
    return MessageResponse(message="Password reset successfully.")


# ── Role-gated areas ────────────────────────────────────────────────
async def _enter_area(identity: Identity, audit: AuditRecorder, area: str) -> AreaResponse:
    await audit.record(
        identity, AuditAction.ACCESS, AuditModule.ACCESS,
        f"{identity.name} accessed the {area} area",
    )
    return AreaResponse(
        message=f"{area.capitalize()} access granted",
        user=AreaUser(
            id=identity.id, name=identity.name, email=identity.email, role=identity.role.value
        ),
    )


@router.get("/areas/administrator", response_model=AreaResponse)
async def administrator_area(
    identity: Identity = Depends(require_admin),
    audit: AuditRecorder = Depends(get_audit),
) -> AreaResponse:
    return await _enter_area(identity, audit, "administrator")


@router.get("/areas/global-manager", response_model=AreaResponse)
async def global_manager_area(
    identity: Identity = Depends(require_user_manager),
    audit: AuditRecorder = Depends(get_audit),
) -> AreaResponse:
    return await _enter_area(identity, audit, "global manager")


@router.get("/areas/local-manager", response_model=AreaResponse)
async def local_manager_area(
    identity: Identity = Depends(require_local_manager),
    audit: AuditRecorder = Depends(get_audit),
) -> AreaResponse:
    return await _enter_area(identity, audit, "local manager")
