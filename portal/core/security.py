"""
JWT token creation / verification and password hashing (bcrypt).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from portal.core.config import settings
from portal.core.exceptions import InvalidToken, TokenExpired

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Stored value is not a recognised hash
        return False


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def create_access_token(
    user: Any,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign an access token carrying the subject, role and city assignments."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {
            "exp": expire,
            "sub": str(user.id),
            "role": user.role,
            "cities": [c.id for c in user.cities],
            "type": "access",
        },
        _SECRET,
        algorithm=_ALGORITHM,
    )


def create_reset_token(user: Any) -> tuple[str, datetime]:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.RESET_TOKEN_EXPIRE_MINUTES
    )
    token = jwt.encode(
        {"exp": expire, "sub": str(user.id), "email": user.email, "type": "reset"},
        _SECRET,
        algorithm=_ALGORITHM,
    )
    return token, expire


def _decode(token: str, expected_type: str, *, verify_exp: bool = True) -> dict:
    try:
        payload = jwt.decode(
            token,
            _SECRET,
            algorithms=[_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except ExpiredSignatureError as exc:
        raise TokenExpired(error=str(exc)) from exc
    except JWTError as exc:
        raise InvalidToken(error=str(exc)) from exc

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise InvalidToken(error="Unexpected token payload")
    return payload


def decode_access_token(token: str) -> dict:
    """Return the payload of a valid *access* token.

    Raises ``TokenExpired`` or ``InvalidToken``.
    """
    return _decode(token, "access")


def decode_access_token_for_refresh(token: str) -> dict:
    """Like ``decode_access_token`` but accepts expired tokens."""
    return _decode(token, "access", verify_exp=False)


def decode_reset_token(token: str) -> dict:
    return _decode(token, "reset")


def subject_id(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken(error="Malformed subject") from exc
