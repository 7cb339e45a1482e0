"""Tests for the post-handler audit hook."""

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError

from portal.api.audit_route import audited
from portal.core.exceptions import NotFound, register_exception_handlers
from portal.models.audit_log import AuditModule


@pytest.fixture
async def hooked_client(audit):
    router = APIRouter(route_class=audited(AuditModule.MENUS))

    @router.post("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @router.get("/unavailable")
    async def unavailable():
        return JSONResponse(status_code=503, content={"success": False, "message": "Down for maintenance"})

    @router.delete("/missing")
    async def missing():
        raise NotFound("Nothing here")

    @router.put("/duplicate")
    async def duplicate():
        raise IntegrityError("UPDATE cities", {}, Exception("UNIQUE constraint failed: cities.name"))

    @router.get("/fine")
    async def fine():
        return {"success": True}

    application = FastAPI()
    register_exception_handlers(application)
    application.include_router(router)
    application.state.audit = audit

    transport = ASGITransport(app=application, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_unhandled_exception_records_error_variant(hooked_client, audit_entries):
    resp = await hooked_client.post("/boom")
    assert resp.status_code == 500
    entries = await audit_entries()
    assert [(e.action, e.module) for e in entries] == [("create-error", "menus")]
    assert "kaboom" in entries[0].details
    assert entries[0].user_id is None


async def test_server_error_response_records_read_error(hooked_client, audit_entries):
    resp = await hooked_client.get("/unavailable")
    assert resp.status_code == 503
    entries = await audit_entries("read-error")
    assert len(entries) == 1
    assert "Down for maintenance" in entries[0].details


async def test_client_errors_are_left_to_handlers(hooked_client, audit_entries):
    assert (await hooked_client.delete("/missing")).status_code == 404
    assert (await hooked_client.get("/fine")).status_code == 200
    assert await audit_entries() == []


async def test_constraint_violation_is_a_client_error(hooked_client, audit_entries):
    resp = await hooked_client.put("/duplicate")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Database constraint violation"
    assert await audit_entries() == []
