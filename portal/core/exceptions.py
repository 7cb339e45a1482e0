"""
Error taxonomy and global exception handlers.

Every error body is ``{"success": false, "message": ...}``; the underlying
detail is only exposed as ``"error"`` outside production.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

from portal.core.config import settings

logger = logging.getLogger(__name__)


class PortalError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        error: str | None = None,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error = error
        self.extra = extra or {}
        self.headers = headers
        super().__init__(self.message)


class MissingToken(PortalError):
    status_code = 401
    default_message = "Not authorized: token not provided"


class InvalidToken(PortalError):
    status_code = 401
    default_message = "Invalid token"


class TokenExpired(InvalidToken):
    default_message = "Session expired"


class UnknownSubject(PortalError):
    status_code = 401
    default_message = "User not found"


class InvalidCredentials(PortalError):
    status_code = 401
    default_message = "Incorrect email/CPF or password"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Access denied"


class NotFound(PortalError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(PortalError):
    status_code = 400
    default_message = "Resource already exists"


class ValidationFailed(PortalError):
    status_code = 400
    default_message = "Invalid request data"


class ServiceUnavailable(PortalError):
    status_code = 503
    default_message = "Service unavailable"


class Internal(PortalError):
    pass


def error_body(message: str, error: Any = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message, **extra}
    if error is not None and not settings.is_production:
        body["error"] = error
    return body


async def _portal_error_handler(_request: Request, exc: PortalError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error, **exc.extra),
        headers=exc.headers,
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _rate_limit_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content=error_body(
            "Too many attempts. Please try again later.", f"Rate limit exceeded: {exc.detail}"
        ),
    )


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request data", "errors": errors},
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=400,
        content=error_body("Database constraint violation", str(exc.orig)),
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal database error", str(exc)),
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", str(exc)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(PortalError, _portal_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
