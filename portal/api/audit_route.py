"""
Post-handler audit hook.

Routers are built with a route class bound to an ``AuditModule``. After each
handler runs, the hook receives the outcome (status code and message, or the
exception that escaped) and records an error-variant entry for server-side
failures. Client errors and deliberately raised ``PortalError``s are audited
by the handlers themselves.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from portal.core.exceptions import PortalError
from portal.models.audit_log import AuditAction, AuditModule

logger = logging.getLogger(__name__)

_ERROR_ACTIONS = {
    "POST": AuditAction.CREATE_ERROR,
    "PUT": AuditAction.UPDATE_ERROR,
    "PATCH": AuditAction.UPDATE_ERROR,
    "DELETE": AuditAction.DELETE_ERROR,
}


@dataclass(frozen=True)
class Outcome:
    status_code: int
    message: str


def _response_message(response: Response) -> str:
    try:
        body = json.loads(response.body)
    except (AttributeError, TypeError, ValueError):
        return "Operation failed"
    if isinstance(body, dict):
        return str(body.get("message") or "Operation failed")
    return "Operation failed"


async def record_outcome(request: Request, module: AuditModule, outcome: Outcome) -> None:
    """Emit an error-variant entry when ``outcome`` is a server failure."""
    if outcome.status_code < 500:
        return
    audit = getattr(request.app.state, "audit", None)
    if audit is None:
        return
    identity = getattr(request.state, "identity", None)
    action = _ERROR_ACTIONS.get(request.method.upper(), AuditAction.READ_ERROR)
    who = identity.name if identity is not None else "Unknown user"
    await audit.record(
        identity,
        action,
        module,
        f"{who} - {request.method} {request.url.path} failed: {outcome.message}",
    )


class AuditedRoute(APIRoute):
    audit_module: AuditModule = AuditModule.ACCESS

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()
        module = self.audit_module

        async def audited_handler(request: Request) -> Response:
            try:
                response = await handler(request)
            except (PortalError, HTTPException, RequestValidationError, IntegrityError):
                # Rendered as client errors by the exception handlers
                raise
            except Exception as exc:
                logger.error("Unhandled error in %s %s: %s", request.method, request.url.path, exc)
                await record_outcome(request, module, Outcome(500, str(exc)))
                raise
            await record_outcome(
                request, module, Outcome(response.status_code, _response_message(response))
            )
            return response

        return audited_handler


def audited(module: AuditModule) -> type[AuditedRoute]:
    """Return a route class that reports outcomes under ``module``."""
    return type(f"Audited{module.name.title().replace('_', '')}Route", (AuditedRoute,), {"audit_module": module})
